from dataclasses import dataclass, field
from datetime import datetime
import enum


class SignalType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Signal:
    """Trading signal produced fresh on every evaluation."""
    type: SignalType
    strength: float
    price: float
    timestamp: datetime
    reasoning: str
    indicators: dict = field(default_factory=dict, compare=False)

    def __repr__(self) -> str:
        return f"<Signal {self.type.value} strength={self.strength:.2f} price={self.price} {self.reasoning!r}>"

    @classmethod
    def hold(cls, price: float, timestamp: datetime, reasoning: str, **indicators) -> "Signal":
        return cls(
            type=SignalType.HOLD,
            strength=0.0,
            price=price,
            timestamp=timestamp,
            reasoning=reasoning,
            indicators=indicators,
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "strength": self.strength,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "reasoning": self.reasoning,
            "indicators": dict(self.indicators),
        }
