#!/usr/bin/env python3
"""
Print a per-event-type summary of tick CSVs written by intraday_tick.py.

Usage:
  # Specific files:
  python -m scripts.summarize_ticks data/ticks/IBM-US-Equity_2024-01-05.csv

  # Every file for one security (or every file, without --security):
  python -m scripts.summarize_ticks --security "IBM US Equity"
"""
import argparse
import pathlib

from ticklib.config import load_config
from ticklib.tick_reader import load_ticks, summarize, tick_files


def parse_args(argv=None):
    p = argparse.ArgumentParser(description='Summarize tick CSVs')
    p.add_argument('files', nargs='*', type=pathlib.Path, help='Tick CSV files')
    p.add_argument('--security', default='', help='Only files for this security')
    p.add_argument('--out-dir', help='Tick directory (default from config.yml)')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    files = args.files
    if not files:
        out_dir = pathlib.Path(args.out_dir or load_config()["output"]["dir"])
        files = tick_files(out_dir, args.security)
    if not files:
        print("No tick files found.")
        return

    for path in files:
        try:
            df = load_ticks(path)
        except FileNotFoundError:
            print(f"[!] {path}: not found.")
            continue
        print(f"\n=== {path.name} ({len(df)} ticks) ===")
        print(summarize(df).to_string())


if __name__ == '__main__':
    main()
