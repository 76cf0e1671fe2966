# core/data_engine/storage.py
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from core.exceptions import CorruptDataError, NotFoundError
from core.logger import get_logger
from .candles import CANDLE_COLUMNS, Candle, sort_and_dedupe

logger = get_logger(__name__)


class CandleStorage:
    """
    Manages CSV candle files, one file per (market, interval):

        <data_root>/KRW_BTC_15min.csv

    Header is ``timestamp,open,high,low,close,volume``. Reads never mutate,
    so any number of concurrent backtests may load the same key.
    """

    def __init__(self, data_root: Path):
        self.data_root = Path(data_root)
        self._ensure_directories()

    def _ensure_directories(self):
        """Create the data directory"""
        self.data_root.mkdir(parents=True, exist_ok=True)

    def get_file_path(self, market: str, interval: int) -> Path:
        """Generate file path for a (market, interval) key"""
        clean_market = market.replace("-", "_")
        return self.data_root / f"{clean_market}_{int(interval)}min.csv"

    def exists(self, market: str, interval: int) -> bool:
        return self.get_file_path(market, interval).exists()

    def save_candles(self, market: str, interval: int, candles: Sequence[Candle]) -> Path:
        """Persist the full sequence, overwriting whatever was stored for the key"""
        file_path = self.get_file_path(market, interval)
        ordered = sort_and_dedupe(candles)

        data = pd.DataFrame([c.to_dict() for c in ordered], columns=list(CANDLE_COLUMNS))
        data["volume"] = data["volume"].fillna(0)

        # Write to a sibling temp file and swap it in so readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(dir=self.data_root, prefix=file_path.stem, suffix=".tmp")
        os.close(fd)
        try:
            data.to_csv(tmp_name, index=False)
            os.replace(tmp_name, file_path)
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

        logger.info(f"Saved {len(ordered)} candles to {file_path}")
        return file_path

    def load_candles(self, market: str, interval: int) -> List[Candle]:
        """Load the stored sequence for a key, ascending by timestamp"""
        file_path = self.get_file_path(market, interval)
        if not file_path.exists():
            raise NotFoundError(market, interval, str(file_path))

        data = self._read_frame(file_path)
        if data.empty:
            return []

        # InvalidCandleError from the constructor propagates unchanged
        candles = [
            Candle(
                timestamp=int(row.timestamp),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in data.itertuples(index=False)
        ]
        logger.debug(f"Loaded {len(candles)} candles from {file_path}")
        return candles

    def _read_frame(self, file_path: Path) -> pd.DataFrame:
        try:
            data = pd.read_csv(file_path, float_precision="round_trip")
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError) as e:
            raise CorruptDataError(f"Cannot parse {file_path}: {e}") from e

        missing = [column for column in CANDLE_COLUMNS if column not in data.columns]
        if missing:
            raise CorruptDataError(f"{file_path} is missing columns: {missing}")

        data = data[list(CANDLE_COLUMNS)]
        if data.empty:
            return data

        data = data.assign(volume=data["volume"].fillna(0))
        if data.isna().any().any():
            raise CorruptDataError(f"{file_path} contains blank fields")

        for column in CANDLE_COLUMNS:
            if not pd.api.types.is_numeric_dtype(data[column]):
                raise CorruptDataError(f"{file_path}: column '{column}' is not numeric")
        if not pd.api.types.is_integer_dtype(data["timestamp"]):
            raise CorruptDataError(f"{file_path}: timestamps must be integer epoch milliseconds")

        timestamps = data["timestamp"]
        if not (timestamps.is_monotonic_increasing and timestamps.is_unique):
            raise CorruptDataError(f"{file_path}: timestamps are not strictly ascending")

        return data

    def delete(self, market: str, interval: int) -> bool:
        """Remove stored data for a key; returns False if nothing was stored"""
        file_path = self.get_file_path(market, interval)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info(f"Deleted {file_path}")
        return True

    def list_datasets(self) -> List[Dict]:
        """Describe every stored (market, interval) file"""
        datasets = []
        for file_path in sorted(self.data_root.glob("*min.csv")):
            key = self._parse_file_name(file_path)
            if key is None:
                continue
            market, interval = key
            datasets.append({"market": market, "interval": interval, **self.get_file_info(file_path)})
        return datasets

    @staticmethod
    def _parse_file_name(file_path: Path) -> Optional[tuple]:
        clean_market, _, interval_part = file_path.stem.rpartition("_")
        if not clean_market or not interval_part.endswith("min"):
            return None
        try:
            interval = int(interval_part[:-3])
        except ValueError:
            return None
        return clean_market.replace("_", "-"), interval

    def get_file_info(self, file_path: Path) -> dict:
        """Get file metadata"""
        if not file_path.exists():
            return {}

        info = {"file_path": str(file_path), "file_size": file_path.stat().st_size}
        try:
            timestamps = pd.read_csv(file_path, usecols=["timestamp"])["timestamp"]
            info.update({
                "row_count": len(timestamps),
                "first_timestamp": int(timestamps.min()) if not timestamps.empty else None,
                "last_timestamp": int(timestamps.max()) if not timestamps.empty else None,
            })
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError, TypeError) as e:
            logger.warning(f"Could not read {file_path}: {e}")
        return info
