#!/usr/bin/env python3
"""
intraday_tick.py

Retrieve intraday raw ticks (TRADE/BID/ASK) for one security and append them
to per-day CSVs, {security}_{YYYY-MM-DD}.csv, under the output directory.

Usage:
    python intraday_tick.py -n -s "IBM US Equity" -e TRADE -e BID \
        -sd 2008-08-11T15:30:00 -ed 2008-08-11T15:35:00

Notes:
1) All times are in GMT.
2) Only one security can be specified.
3) Without -sd/-ed the window is 15:30-15:35 on the last weekday.
4) Without -n, missing security/start/end are prompted for.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys
from typing import Callable, List, Optional

from ticklib.bloomberg import BloombergTickSource, SessionError, blpapi
from ticklib.config import (PROVIDERS, ConnectionSettings, RequestParams,
                            connection_settings, load_config,
                            normalize_event_types)
from ticklib.tick_reader import load_ticks, summarize
from ticklib.tick_writer import DailyTickWriter
from ticklib.trading_window import default_window, parse_gmt

_LOG = logging.getLogger("intraday_tick")

_LIBRARY_ERRORS = (ConnectionError, TimeoutError, asyncio.TimeoutError)
if blpapi is not None:
    _LIBRARY_ERRORS += (blpapi.Exception,)

_PROMPTS = (
    ("security", "Provide ticker: "),
    ("start", "Provide start date: "),
    ("end", "Provide end date: "),
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Retrieve intraday raw ticks for one security into per-day CSVs",
        epilog="All times are in GMT. Only one security can be specified.",
    )
    p.add_argument('-n', '--non-interactive', action='store_true',
                   help='Never prompt and exit without waiting for ENTER')
    p.add_argument('-s', '--security', help='Security, e.g. "IBM US Equity"')
    p.add_argument('-e', '--event', dest='events', action='append', metavar='EVENT',
                   help='Event type, repeatable (default TRADE, BID, ASK)')
    p.add_argument('-sd', '--start', help='Start datetime, e.g. 2008-08-11T15:30:00')
    p.add_argument('-ed', '--end', help='End datetime, e.g. 2008-08-11T15:35:00')
    p.add_argument('-ip', '--host', help='Provider host')
    p.add_argument('-p', '--port', type=int, help='Provider TCP port')
    p.add_argument('--provider', choices=PROVIDERS, help='Market-data provider')
    p.add_argument('--client-id', type=int, help='IB API client id')
    p.add_argument('--out-dir', help='Directory for tick CSVs')
    p.add_argument('--config', type=pathlib.Path, help='Alternate config.yml')
    p.add_argument('--summary', action='store_true',
                   help='Log a per-event-type summary of each file written')
    p.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return p


def _answer(ask: Callable[[str], str], prompt: str) -> str:
    """Closed or redirected stdin counts as a blank answer."""
    try:
        return ask(prompt)
    except EOFError:
        return ""


def prompt_missing(args: argparse.Namespace, ask: Callable[[str], str] = input):
    """Ask for security/start/end not given on the command line; blank keeps the default."""
    for attr, prompt in _PROMPTS:
        if getattr(args, attr):
            continue
        answer = _answer(ask, prompt).strip()
        if answer:
            setattr(args, attr, answer)


def resolve_request(args: argparse.Namespace, cfg: dict, now=None) -> RequestParams:
    req_cfg = cfg["request"]
    events = normalize_event_types(args.events or req_cfg["event_types"])
    if args.start and args.end:
        start, end = parse_gmt(args.start), parse_gmt(args.end)
    else:
        if args.start or args.end:
            _LOG.warning("Both start and end are needed; using the default window")
        win = req_cfg["window"]
        start, end = default_window(now, win["start"], win["end"])
    if start > end:
        raise ValueError(f"start {start:%Y-%m-%dT%H:%M:%S} is after end {end:%Y-%m-%dT%H:%M:%S}")
    security = (args.security or req_cfg["security"]).strip()
    return RequestParams(security, events, start, end)


def make_source(conn: ConnectionSettings, cfg: dict):
    if conn.provider == "ib":
        from ticklib.ib_ticks import IBTickSource
        ib_cfg = cfg["ib"]
        return IBTickSource(conn, page_size=int(ib_cfg["page_size"]),
                            use_rth=bool(ib_cfg["use_rth"]))
    return BloombergTickSource(conn, service=cfg["bloomberg"]["service"])


def fetch_to_csv(source, params: RequestParams, out_dir: pathlib.Path) -> DailyTickWriter:
    with DailyTickWriter(params.security, out_dir) as writer:
        writer.write_all(source.iter_ticks(params))
    return writer


def log_summaries(paths: List[pathlib.Path]):
    for path in paths:
        _LOG.info("%s\n%s", path.name, summarize(load_ticks(path)).to_string())


def run(argv: Optional[List[str]] = None, ask: Callable[[str], str] = input,
        source_factory=make_source) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    _LOG.info("Intraday Tick Scraper")
    try:
        cfg = load_config(args.config)
        if not args.non_interactive:
            prompt_missing(args, ask)
        params = resolve_request(args, cfg)
        conn = connection_settings(cfg, args.provider, args.host, args.port, args.client_id)
    except (ValueError, FileNotFoundError) as exc:
        parser.error(str(exc))

    out_dir = pathlib.Path(args.out_dir or cfg["output"]["dir"])
    status = 0
    try:
        source = source_factory(conn, cfg)
        writer = fetch_to_csv(source, params, out_dir)
        _LOG.info("%d ticks written to %d file(s)", writer.rows_written, len(writer.paths))
        if writer.rows_written == 0:
            _LOG.warning("No ticks returned for %s", params.security)
        if args.summary:
            log_summaries(writer.paths)
    except (SessionError, RuntimeError, ValueError) as exc:
        _LOG.error("%s", exc)
        status = 1
    except _LIBRARY_ERRORS as exc:
        _LOG.error("Library Exception!!! %s", exc)
        status = 1

    if not args.non_interactive:
        _answer(ask, "Press ENTER to quit")
    return status


def main():
    logging.basicConfig(
        format="%(asctime)s %(levelname)s: %(message)s",
        level=logging.INFO
    )
    logging.getLogger('ib_insync').setLevel(logging.WARNING)
    sys.exit(run())


if __name__ == '__main__':
    main()
