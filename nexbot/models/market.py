from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    PRICE = "price"
    MARKET_CAP = "market_cap"
    VOLUME = "volume"
    CHANGE = "change"
    GENERAL = "general"

    @classmethod
    def parse(cls, label: Optional[str]) -> "Intent":
        """Map a classifier label onto the closed set, defaulting to GENERAL."""
        if not label:
            return cls.GENERAL
        try:
            return cls(label.strip().lower())
        except ValueError:
            return cls.GENERAL


@dataclass(frozen=True)
class CoinFact:
    name: str
    symbol: str
    price: Optional[float]
    market_cap: Optional[float]
    volume_24h: Optional[float]
    change_24h: Optional[float]
    last_updated: Optional[str]


@dataclass(frozen=True)
class NewsItem:
    title: str
    url: Optional[str]
    source: Optional[str]
    published_at: Optional[str]
