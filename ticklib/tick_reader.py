import pathlib
from typing import List

import pandas as pd

from ticklib.tick_writer import security_slug

SUMMARY_COLUMNS = ["count", "first", "last", "low", "high", "volume"]


def load_ticks(path: pathlib.Path) -> pd.DataFrame:
    """Read a tick CSV written by DailyTickWriter."""
    return pd.read_csv(path, parse_dates=["time"])


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    """
    One row per event type: tick count, first/last time, value range and
    total size.
    """
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS, index=pd.Index([], name="type"))
    return df.groupby("type", sort=True).agg(
        count=("value", "size"),
        first=("time", "min"),
        last=("time", "max"),
        low=("value", "min"),
        high=("value", "max"),
        volume=("size", "sum"),
    )


def tick_files(out_dir: pathlib.Path, security: str = "") -> List[pathlib.Path]:
    """All tick CSVs in ``out_dir``, optionally only those for one security."""
    prefix = security_slug(security)
    pattern = f"{prefix}_*.csv" if prefix else "*_*.csv"
    return sorted(pathlib.Path(out_dir).glob(pattern))
