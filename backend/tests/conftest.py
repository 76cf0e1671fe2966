# tests/conftest.py
import sys
from pathlib import Path

import pytest

# Resolve backend/ folder and add it to sys.path
BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from core.data_engine import Candle, CandleStorage  # noqa: E402

START_MS = 1_700_000_000_000
MINUTE_MS = 60_000


@pytest.fixture
def make_candles():
    """Build one-minute candles from a list of closes"""
    def _make(closes, start=START_MS, step=MINUTE_MS, volume=1.0):
        return [
            Candle(timestamp=start + i * step, open=close, high=close, low=close, close=close, volume=volume)
            for i, close in enumerate(closes)
        ]
    return _make


@pytest.fixture
def storage(tmp_path):
    """Candle store rooted in a temporary directory"""
    return CandleStorage(tmp_path / "data")
