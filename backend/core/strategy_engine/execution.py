# core/strategy_engine/execution.py
"""
Order-placement sinks injected into strategies.

Backtests pass a paper sink so `execute` never reaches an exchange; live
trading would pass an exchange-backed sink instead of flipping a flag inside
strategy code.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol

from core.logger import get_logger

logger = get_logger(__name__)


class OrderType(Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderSide(Enum):
    BID = "bid"  # buy
    ASK = "ask"  # sell


class OrderStatus(Enum):
    PENDING = "pending"
    RECORDED = "recorded"


@dataclass
class OrderRequest:
    """An order a strategy wants placed"""
    market: str
    side: OrderSide
    order_type: OrderType
    volume: float
    price: Optional[float] = None  # For limit orders
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.order_type == OrderType.LIMIT and self.price is None:
            raise ValueError("Limit orders require a price")


class ExecutionSink(Protocol):
    async def place_order(self, order: OrderRequest) -> None:
        ...


class PaperExecutionSink:
    """Records orders in memory; never talks to an exchange"""

    def __init__(self):
        self.orders: List[OrderRequest] = []

    async def place_order(self, order: OrderRequest) -> None:
        order.status = OrderStatus.RECORDED
        self.orders.append(order)
        logger.debug(
            f"Paper order {order.side.value} {order.order_type.value} {order.market} "
            f"volume={order.volume} price={order.price}"
        )

    def clear(self) -> None:
        self.orders = []


class NullExecutionSink:
    """Discards every order"""

    async def place_order(self, order: OrderRequest) -> None:
        return None
