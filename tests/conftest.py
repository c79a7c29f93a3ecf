"""Shared fakes for the vendor SDKs.

``blp_api`` builds a stand-in for the ``blpapi`` module: a session that
replays a scripted list of events. ``fake_ib`` stands in for ``ib_insync.IB``
and serves ``reqHistoricalTicks`` from in-memory tick lists.
"""
from __future__ import annotations

import datetime as dt
from types import SimpleNamespace

import pytest

UTC = dt.timezone.utc

EVENT_TYPES = SimpleNamespace(SESSION_STATUS=2, RESPONSE=5, PARTIAL_RESPONSE=6,
                              SERVICE_STATUS=9)

# ─────────────────────────── blpapi stand-ins ──────────────────────────────
class FakeElement:
    def __init__(self, fields=None, values=None):
        self._fields = fields or {}
        self._values = list(values or [])

    def hasElement(self, name):
        return name in self._fields

    def getElement(self, name):
        return self._fields[name]

    def getElementAsString(self, name):
        return str(self._fields[name])

    def getElementAsFloat(self, name):
        return float(self._fields[name])

    def getElementAsInteger(self, name):
        return int(self._fields[name])

    def getElementAsDatetime(self, name):
        return self._fields[name]

    def numValues(self):
        return len(self._values)

    def getValueAsElement(self, i):
        return self._values[i]

    def appendValue(self, value):
        self._values.append(value)

    @property
    def values(self):
        return self._values


class FakeMessage(FakeElement):
    def __init__(self, fields=None, message_type="IntradayTickResponse"):
        super().__init__(fields)
        self._type = message_type

    def messageType(self):
        return self._type


class FakeEvent:
    def __init__(self, event_type, messages=()):
        self._type = event_type
        self._messages = list(messages)

    def eventType(self):
        return self._type

    def __iter__(self):
        return iter(self._messages)


class FakeRequest:
    def __init__(self, name):
        self.name = name
        self.fields = {"eventTypes": FakeElement()}

    def set(self, name, value):
        self.fields[name] = value

    def getElement(self, name):
        return self.fields[name]

    def __str__(self):
        return f"{self.name} {self.fields['security']}"


class FakeService:
    def __init__(self):
        self.requests = []

    def createRequest(self, name):
        req = FakeRequest(name)
        self.requests.append(req)
        return req


class FakeSessionOptions:
    host = None
    port = None

    def setServerHost(self, host):
        self.host = host

    def setServerPort(self, port):
        self.port = port


class FakeSession:
    def __init__(self, options, events, start_ok=True, service_ok=True):
        self.options = options
        self._events = list(events)
        self.start_ok = start_ok
        self.service_ok = service_ok
        self.service = FakeService()
        self.opened = []
        self.sent = []
        self.stopped = False

    def start(self):
        return self.start_ok

    def openService(self, name):
        self.opened.append(name)
        return self.service_ok

    def getService(self, name):
        return self.service

    def sendRequest(self, request):
        self.sent.append(request)

    def nextEvent(self):
        return self._events.pop(0)

    def stop(self):
        self.stopped = True


def tick_element(time, type_, value, size):
    return FakeElement({"time": time, "type": type_, "value": value, "size": size})


def tick_message(*ticks):
    data = FakeElement(values=[tick_element(*t) for t in ticks])
    return FakeMessage({"tickData": FakeElement({"tickData": data})})


def error_message(category, text):
    return FakeMessage({"responseError": FakeElement({"category": category, "message": text})})


@pytest.fixture
def blp_api():
    """Return ``make(events, **session_kw) -> (api, sessions)``."""
    def make(events, **session_kw):
        sessions = []

        def session_factory(options):
            session = FakeSession(options, events, **session_kw)
            sessions.append(session)
            return session

        api = SimpleNamespace(SessionOptions=FakeSessionOptions,
                              Session=session_factory,
                              Event=EVENT_TYPES)
        return api, sessions
    return make

# ─────────────────────────── ib_insync stand-in ────────────────────────────
class FakeIB:
    def __init__(self, ticks=None, connected=False):
        self.ticks = ticks or {}
        self.connected = connected
        self.connect_args = None
        self.disconnected = False
        self.calls = []

    def isConnected(self):
        return self.connected

    def connect(self, host, port, clientId=0):
        self.connect_args = (host, port, clientId)
        self.connected = True

    def disconnect(self):
        self.disconnected = True
        self.connected = False

    def reqHistoricalTicks(self, contract, startDateTime, endDateTime,
                           numberOfTicks, whatToShow, useRth):
        self.calls.append((contract.symbol, startDateTime, whatToShow))
        ticks = [t for t in self.ticks.get(whatToShow, []) if t.time >= startDateTime]
        return ticks[:numberOfTicks]


def trade_tick(time, price, size):
    return SimpleNamespace(time=time, price=price, size=size)


def quote_tick(time, bid, ask, bid_size, ask_size):
    return SimpleNamespace(time=time, priceBid=bid, priceAsk=ask,
                           sizeBid=bid_size, sizeAsk=ask_size)


@pytest.fixture
def at():
    """``at("15:30:01")`` → tz-aware UTC datetime on 2024-01-05."""
    def make(hms, day=dt.date(2024, 1, 5)):
        return dt.datetime.combine(day, dt.time.fromisoformat(hms), tzinfo=UTC)
    return make
