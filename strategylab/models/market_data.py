from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PriceBar:
    """One daily OHLCV bar for one symbol, supplied by a data provider."""
    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def __repr__(self) -> str:
        return f"<PriceBar {self.symbol} {self.timestamp:%Y-%m-%d} OHLC={self.open}/{self.high}/{self.low}/{self.close}>"

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
