# provide dataclass models

from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class Product:
    pid: str
    name: str
    cost_price: float
    sale_price: float


@dataclass(frozen=True)
class OrderItem:
    pid: str
    name: str  # product name at time of order
    qty: int
    uprice: float  # unit sale price at time of order

    @property
    def line_total(self) -> float:
        return self.uprice * self.qty


@dataclass(frozen=True)
class Order:
    ono: str
    timestamp: int  # epoch milliseconds
    total: float
    cost: float
    profit: float
    items: Tuple[OrderItem, ...] = field(default_factory=tuple)

    @property
    def odate(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000)

    @property
    def item_count(self) -> int:
        return sum(item.qty for item in self.items)


@dataclass(frozen=True)
class ProductStat:
    pid: str
    name: str
    quantity: int
    revenue: float
    cost_price: float  # current cost price of the product
    profit: float

    @property
    def vendor_payment(self) -> float:
        return self.cost_price * self.quantity
