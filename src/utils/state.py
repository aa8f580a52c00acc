from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional

import db.crud as crud
from db.models import Order, OrderItem, Product


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - current_order: items of the order being rung up on the sales screen,
        in the order they were first added. Never persisted.
    """

    current_order: List[OrderItem] = field(default_factory=list)

    def _index_of(self, pid: str) -> Optional[int]:
        for i, item in enumerate(self.current_order):
            if item.pid == pid:
                return i
        return None

    def add_product(self, product: Product) -> OrderItem:
        """Add one unit of product, snapshotting its name and sale price on first add."""
        idx = self._index_of(product.pid)
        if idx is None:
            item = OrderItem(
                pid=product.pid, name=product.name, qty=1, uprice=product.sale_price
            )
            self.current_order.append(item)
        else:
            item = replace(self.current_order[idx], qty=self.current_order[idx].qty + 1)
            self.current_order[idx] = item
        return item

    def increment(self, pid: str) -> bool:
        """Add one more unit of an item already in the order."""
        idx = self._index_of(pid)
        if idx is None:
            return False
        self.current_order[idx] = replace(
            self.current_order[idx], qty=self.current_order[idx].qty + 1
        )
        return True

    def remove_product(self, pid: str) -> bool:
        """Take one unit off; the item disappears when it reaches zero."""
        idx = self._index_of(pid)
        if idx is None:
            return False
        item = self.current_order[idx]
        if item.qty > 1:
            self.current_order[idx] = replace(item, qty=item.qty - 1)
        else:
            del self.current_order[idx]
        return True

    def reset_order(self) -> None:
        self.current_order.clear()

    @property
    def order_total(self) -> float:
        return sum(item.uprice * item.qty for item in self.current_order)

    @property
    def item_count(self) -> int:
        return sum(item.qty for item in self.current_order)

    async def checkout(self, when: Optional[datetime] = None) -> Order:
        """
        Save the current order and start a fresh one.
        Raises ValueError (from crud) when the order is empty.
        """
        order = await crud.checkout(list(self.current_order), when)
        self.reset_order()
        return order
