from typing import Any, Dict, Optional
from dataclasses import dataclass

ORDER_QUANTITY_PLACES = 8


@dataclass(frozen=True)
class OrderRequest:
    coin_id: str
    quantity: float
    order_type: str  # "BUY|SELL"

    @classmethod
    def build(cls, coin_id: str, quantity: float, order_type: str) -> "OrderRequest":
        return cls(coin_id=coin_id, quantity=round(quantity, ORDER_QUANTITY_PLACES), order_type=order_type.upper())

    def to_payload(self) -> Dict[str, Any]:
        return {"coinId": self.coin_id, "quantity": self.quantity, "orderType": self.order_type}


@dataclass
class OrderResult:
    success: bool
    error: Optional[str] = None
    data: Optional[Dict] = None


@dataclass(frozen=True)
class Holding:
    coin_id: str
    name: str
    symbol: str
    quantity: float

    def matches(self, coin: str) -> bool:
        coin = coin.lower()
        return self.name.lower() == coin or self.symbol.lower() == coin


@dataclass(frozen=True)
class Wallet:
    id: Any
    balance: float
