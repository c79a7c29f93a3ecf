"""IBTickSource — historical ticks from TWS / IB Gateway via ib_insync
===================================================================
Same job as :class:`~ticklib.bloomberg.BloombergTickSource`, for desks that
only have an IBKR connection.

* ``TRADE`` → ``whatToShow="TRADES"``; ``BID``/``ASK`` → ``"BID_ASK"`` (one
  request serves both sides, rows are emitted only for the sides asked for).
* ``IBM US Equity`` resolves to ``Stock("IBM", "SMART", "USD")``.
* TWS caps each ``reqHistoricalTicks`` call (1000 ticks), so the window is
  paged, resuming one second after the last tick of a full page.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Iterator, List, Optional, Sequence

from ib_insync import IB, Stock  # type: ignore

from ticklib.config import ConnectionSettings, RequestParams
from ticklib.tick_writer import TickRow

_LOG = logging.getLogger(__name__)

WHAT_TO_SHOW: Dict[str, str] = {"TRADE": "TRADES", "BID": "BID_ASK", "ASK": "BID_ASK"}


class IBTickSource:
    def __init__(self, settings: ConnectionSettings, ib: Optional[IB] = None,
                 page_size: int = 1000, use_rth: bool = False):
        self.settings = settings
        self.ib = ib or IB()
        self.page_size = page_size
        self.use_rth = use_rth
        self._contract_cache: Dict[str, Stock] = {}

    # ───────────────────────── public ──────────────────────────────────────
    def iter_ticks(self, params: RequestParams) -> Iterator[TickRow]:
        unsupported = [ev for ev in params.event_types if ev not in WHAT_TO_SHOW]
        if unsupported:
            raise ValueError(f"provider=ib cannot serve event types {unsupported}")

        owns_connection = not self.ib.isConnected()
        if owns_connection:
            _LOG.info("Connecting to %s:%d (clientId=%d)",
                      self.settings.host, self.settings.port, self.settings.client_id)
            self.ib.connect(self.settings.host, self.settings.port,
                            clientId=self.settings.client_id)
        try:
            contract = self._stock(params.security)
            rows: List[TickRow] = []
            for what in dict.fromkeys(WHAT_TO_SHOW[ev] for ev in params.event_types):
                rows.extend(self._fetch(contract, what, params))
            # stable sort: equal times keep fetch order (request order, BID before ASK)
            rows.sort(key=lambda r: r.time)
            yield from rows
        finally:
            if owns_connection:
                self.ib.disconnect()

    # ───────────────────────── internals ───────────────────────────────────
    def _stock(self, security: str) -> Stock:
        symbol = security.split()[0].upper()
        if symbol not in self._contract_cache:
            self._contract_cache[symbol] = Stock(symbol, "SMART", "USD")
        return self._contract_cache[symbol]

    def _fetch(self, contract: Stock, what: str, params: RequestParams) -> List[TickRow]:
        rows: List[TickRow] = []
        start = params.start
        while start <= params.end:
            # TWS accepts exactly one of start/end
            ticks = self.ib.reqHistoricalTicks(
                contract, start, "", self.page_size, what, self.use_rth
            )
            _LOG.debug("%s %s from %s: %d ticks", contract.symbol, what, start, len(ticks))
            if not ticks:
                break
            for tick in ticks:
                if tick.time > params.end:
                    return rows
                rows.extend(_tick_rows(tick, what, params.event_types))
            if len(ticks) < self.page_size:
                break
            start = ticks[-1].time + dt.timedelta(seconds=1)
        return rows


def _tick_rows(tick, what: str, wanted: Sequence[str]) -> List[TickRow]:
    if what == "TRADES":
        return [TickRow(tick.time, "TRADE", float(tick.price), int(tick.size))]
    out = []
    if "BID" in wanted:
        out.append(TickRow(tick.time, "BID", float(tick.priceBid), int(tick.sizeBid)))
    if "ASK" in wanted:
        out.append(TickRow(tick.time, "ASK", float(tick.priceAsk), int(tick.sizeAsk)))
    return out
