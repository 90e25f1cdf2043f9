from __future__ import annotations

import pytest

from chargectl.core.engine import ConnectionEngine
from fakes import FAST_TIMINGS, FakeRadio


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def engine(radio: FakeRadio) -> ConnectionEngine:
    return ConnectionEngine(radio, timings=FAST_TIMINGS)
