import datetime as dt
from typing import Optional, Tuple

import pandas as pd

_UTC = dt.timezone.utc


def last_trading_day(now: Optional[dt.datetime] = None) -> dt.date:
    """
    Most recent weekday strictly before the GMT date of ``now``.
    Step back one day, then roll back over Saturday/Sunday.
    """
    now = now or dt.datetime.now(_UTC)
    if now.tzinfo is not None:
        now = now.astimezone(_UTC)
    yesterday = pd.Timestamp(now.date()) - pd.Timedelta(days=1)
    return pd.offsets.BDay().rollback(yesterday).date()


def default_window(now: Optional[dt.datetime] = None,
                   start: str = "15:30",
                   end: str = "15:35") -> Tuple[dt.datetime, dt.datetime]:
    """
    (start, end) on the last trading day, GMT. ``start``/``end`` are
    ``HH:MM`` or ``HH:MM:SS`` strings as found in config.yml.
    """
    day = last_trading_day(now)
    start_t = dt.time.fromisoformat(str(start))
    end_t = dt.time.fromisoformat(str(end))
    if end_t < start_t:
        raise ValueError(f"window end {end} is before start {start}")
    return (dt.datetime.combine(day, start_t, tzinfo=_UTC),
            dt.datetime.combine(day, end_t, tzinfo=_UTC))


def parse_gmt(text: str) -> dt.datetime:
    """ISO-ish datetime text → tz-aware UTC. Naive input is taken as GMT."""
    ts = pd.Timestamp(text.strip())
    if ts is pd.NaT:
        raise ValueError(f"not a datetime: {text!r}")
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return ts.to_pydatetime()
