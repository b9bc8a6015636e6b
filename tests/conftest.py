import logging
import random
import sys
from pathlib import Path

import pytest

# Ensure local `src` directory is importable before project is installed.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from salvo import common
from salvo.grid import Grid
from salvo.session import GameSession

# Suppress INFO & DEBUG logs from server threads during tests
logging.basicConfig(level=logging.WARNING)

# Full fleet, no two ships touching:
#   length 2 at (0,0)-(0,1), length 5 at (2,4)-(2,8), length 4 at (4,0)-(4,3),
#   length 3 at (6,0)-(6,2), length 3 vertical at (5,9)-(7,9)
FIXED_ROWS = [
    "sseeeeeeee",
    "eeeeeeeeee",
    "eeeessssse",
    "eeeeeeeeee",
    "sssseeeeee",
    "eeeeeeeees",
    "ssseeeeees",
    "eeeeeeeees",
    "eeeeeeeeee",
    "eeeeeeeeee",
]


class EventLog:
    """Subscriber that records every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, ev):
        self.events.append(ev)

    def clear(self):
        self.events.clear()

    def of_type(self, name):
        return [ev for ev in self.events if ev.type == name]

    def to(self, identity):
        return [ev for ev in self.events if identity in ev.recipients]

    def types(self):
        return [ev.type for ev in self.events]


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=()):
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


@pytest.fixture(autouse=True)
def _plain_framing():
    """Reset global encryption state in case a test enabled it."""
    common.disable_encryption()
    yield
    common.disable_encryption()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def timers():
    created = []

    def factory(interval, function, args=()):
        timer = FakeTimer(interval, function, args)
        created.append(timer)
        return timer

    factory.created = created
    return factory


@pytest.fixture
def fixed_grid():
    return Grid.from_rows(FIXED_ROWS)


@pytest.fixture
def duel(events):
    """Started session between alice and bob on known boards, alice to fire."""
    session = GameSession("ABCD", "alice", rng=random.Random(7))
    session.subscribe(events)
    session.join("bob")
    session.grids["alice"] = Grid.from_rows(FIXED_ROWS)
    session.grids["bob"] = Grid.from_rows(FIXED_ROWS)
    session.turn = "alice"
    events.clear()
    return session
