"""BloombergTickSource — IntradayTickRequest over a blpapi session
===============================================================
Starts a session, opens ``//blp/refdata``, sends one ``IntradayTickRequest``
and walks the event queue until the final ``RESPONSE`` (or a
``SessionTerminated`` status) arrives. Every ``tickData`` element is yielded
as a :class:`~ticklib.tick_writer.TickRow`.

Notes
-----
* One security per request; all times are GMT.
* ``responseError`` messages are logged as ``REQUEST FAILED`` and skipped.
* ``blpapi`` ships from Bloomberg's own package index, so it is optional:
  the source raises ``RuntimeError`` when constructed without it.
* The session is stopped when iteration finishes or is abandoned.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Iterator, List, Tuple

from ticklib.config import ConnectionSettings, RequestParams
from ticklib.tick_writer import TickRow

try:
    import blpapi  # optional, Bloomberg index
except ModuleNotFoundError:
    blpapi = None  # type: ignore

_LOG = logging.getLogger(__name__)

REFDATA_SERVICE = "//blp/refdata"
TICK_DATA = "tickData"
TICK_SIZE = "size"
TIME = "time"
TYPE = "type"
VALUE = "value"
RESPONSE_ERROR = "responseError"
CATEGORY = "category"
MESSAGE = "message"
SESSION_TERMINATED = "SessionTerminated"


class SessionError(RuntimeError):
    """Session could not be started or the service could not be opened."""


class BloombergTickSource:
    def __init__(self, settings: ConnectionSettings, service: str = REFDATA_SERVICE,
                 api=None):
        self.settings = settings
        self.service = service
        self._api = api or blpapi
        if self._api is None:
            raise RuntimeError(
                "provider=bloomberg requires the blpapi package "
                "(pip install --index-url=https://blpapi.bloomberg.com/repository/releases/python/simple/ blpapi)"
            )
        self.errors: List[Tuple[str, str]] = []

    # ───────────────────────── public ──────────────────────────────────────
    def iter_ticks(self, params: RequestParams) -> Iterator[TickRow]:
        session = self._open_session()
        try:
            if not session.openService(self.service):
                raise SessionError(f"Failed to open {self.service}")
            self._send_request(session, params)
            yield from self._event_loop(session)
        finally:
            session.stop()

    # ───────────────────────── session / request ───────────────────────────
    def _open_session(self):
        opts = self._api.SessionOptions()
        opts.setServerHost(self.settings.host)
        opts.setServerPort(self.settings.port)
        _LOG.info("Connecting to %s:%d", self.settings.host, self.settings.port)
        session = self._api.Session(opts)
        if not session.start():
            raise SessionError("Failed to start session.")
        return session

    def _send_request(self, session, params: RequestParams):
        request = session.getService(self.service).createRequest("IntradayTickRequest")
        request.set("security", params.security)
        event_types = request.getElement("eventTypes")
        for ev in params.event_types:
            event_types.appendValue(ev)
        request.set("startDateTime", params.start)
        request.set("endDateTime", params.end)
        _LOG.info("Sending Request: %s", request)
        session.sendRequest(request)

    # ───────────────────────── event loop ──────────────────────────────────
    def _event_loop(self, session) -> Iterator[TickRow]:
        Event = self._api.Event
        while True:
            event = session.nextEvent()
            etype = event.eventType()
            if etype == Event.PARTIAL_RESPONSE:
                _LOG.info("Processing Partial Response")
                yield from self._response_rows(event)
            elif etype == Event.RESPONSE:
                _LOG.info("Processing Response")
                yield from self._response_rows(event)
                return
            elif etype == Event.SESSION_STATUS:
                for msg in event:
                    if str(msg.messageType()) == SESSION_TERMINATED:
                        _LOG.warning("Session terminated before the final response")
                        return

    def _response_rows(self, event) -> Iterator[TickRow]:
        for msg in event:
            if msg.hasElement(RESPONSE_ERROR):
                err = msg.getElement(RESPONSE_ERROR)
                category = err.getElementAsString(CATEGORY)
                text = err.getElementAsString(MESSAGE)
                self.errors.append((category, text))
                _LOG.error("REQUEST FAILED: %s (%s)", category, text)
                continue
            yield from message_rows(msg)


def message_rows(msg) -> Iterator[TickRow]:
    data = msg.getElement(TICK_DATA).getElement(TICK_DATA)
    for i in range(data.numValues()):
        item = data.getValueAsElement(i)
        yield TickRow(
            time=_as_gmt(item.getElementAsDatetime(TIME)),
            type=item.getElementAsString(TYPE),
            value=item.getElementAsFloat(VALUE),
            size=item.getElementAsInteger(TICK_SIZE),
        )


def _as_gmt(ts: dt.datetime) -> dt.datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=dt.timezone.utc)
    return ts.astimezone(dt.timezone.utc)
