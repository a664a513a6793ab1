import datetime as dt
import random

import pytest

from eqle.app.puzzle.engine import GameEngine
from eqle.app.puzzle.storage import MemoryStore
from eqle_core import event_bus

TODAY = dt.date(2024, 3, 10)
ANSWER = "12+57=69"


class FakeClock:
    def __init__(self, current: dt.datetime):
        self.current = current

    def __call__(self) -> dt.datetime:
        return self.current

    def advance(self, **kw) -> None:
        self.current = self.current + dt.timedelta(**kw)


def seeded_store(answer=ANSWER, day=TODAY, **extra):
    return MemoryStore(
        {"DailyEquation": answer, "LastEquationDate": day.isoformat(), **extra}
    )


@pytest.fixture
def clock():
    return FakeClock(dt.datetime(2024, 3, 10, 15, 0, 0))


@pytest.fixture
def store():
    return seeded_store()


@pytest.fixture
def engine(store, clock):
    return GameEngine(store, rng=random.Random(7), now=clock)


@pytest.fixture(autouse=True)
def clean_event_bus():
    saved = {k: list(v) for k, v in event_bus.handlers.items()}
    yield
    event_bus.handlers.clear()
    event_bus.handlers.update(saved)
