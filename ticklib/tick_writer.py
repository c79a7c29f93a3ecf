"""DailyTickWriter — per-day tick CSV files
=========================================
Appends tick rows to ``{security}_{YYYY-MM-DD}.csv`` and rolls to a new file
whenever the date of an incoming tick differs from the open file's date.

* Spaces and path separators in the security become ``-``
  (``IBM US Equity`` → ``IBM-US-Equity_2024-01-05.csv``).
* Files are appended to, never truncated; the ``time,type,value,size`` header
  is written only to a new (or empty) file.
* Nothing is created until the first tick arrives.
"""
from __future__ import annotations

import csv
import datetime as dt
import logging
import pathlib
import re
from dataclasses import dataclass
from typing import IO, Iterable, List, Optional

_LOG = logging.getLogger(__name__)

HEADER = ["time", "type", "value", "size"]
_UTC = dt.timezone.utc
_UNSAFE = re.compile(r"[\s/\\]")

# ─────────────────────────── data class ────────────────────────────────────
@dataclass(slots=True)
class TickRow:
    time: dt.datetime
    type: str
    value: float
    size: int

    @property
    def gmt(self) -> dt.datetime:
        return self.time.astimezone(_UTC) if self.time.tzinfo else self.time

    @property
    def date(self) -> dt.date:
        return self.gmt.date()

    def as_csv(self) -> List[str]:
        ts = self.gmt
        return [
            f"{ts:%Y-%m-%dT%H:%M:%S}.{ts.microsecond // 1000:03d}",
            self.type,
            f"{self.value:.3f}",
            str(int(self.size)),
        ]


def security_slug(security: str) -> str:
    return _UNSAFE.sub("-", security.strip())


def tick_file_name(security: str, day: dt.date) -> str:
    return f"{security_slug(security)}_{day.isoformat()}.csv"

# ─────────────────────────── writer ────────────────────────────────────────
class DailyTickWriter:
    def __init__(self, security: str, out_dir: pathlib.Path | str):
        self.security = security
        self.out_dir = pathlib.Path(out_dir)
        self.paths: List[pathlib.Path] = []
        self.rows_written = 0
        self._day: Optional[dt.date] = None
        self._fh: Optional[IO[str]] = None
        self._writer = None

    def __enter__(self) -> "DailyTickWriter":
        return self

    def __exit__(self, *exc):
        self.close()

    def write(self, row: TickRow):
        if self._fh is None or row.date != self._day:
            self._roll(row.date)
        self._writer.writerow(row.as_csv())
        self.rows_written += 1

    def write_all(self, rows: Iterable[TickRow]) -> int:
        before = self.rows_written
        for row in rows:
            self.write(row)
        return self.rows_written - before

    def close(self):
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None

    # ───────────────────────── internals ───────────────────────────────────
    def _roll(self, day: dt.date):
        self.close()
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / tick_file_name(self.security, day)
        new_file = not path.exists() or path.stat().st_size == 0
        self._fh = path.open("a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._fh)
        if new_file:
            self._writer.writerow(HEADER)
        self._day = day
        if path not in self.paths:
            self.paths.append(path)
        _LOG.info("Ticks for %s → %s", day, path)
