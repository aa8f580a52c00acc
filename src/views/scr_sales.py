from typing import Dict

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, HorizontalGroup, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, Rule

import db.crud as crud
from db.models import OrderItem, Product
from utils.messages import CurrentOrderChangedMessage, NewOrderMessage, ProductsChangedMessage
from utils.pure import format_currency
from views.base_screen import BaseScreen


class OrderItemWidget(HorizontalGroup):
    """One line of the current order, with - / + buttons."""

    def __init__(self, item: OrderItem):
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:
        with Vertical(classes="div-item"):
            yield Label(self.item.name, classes="label-item-name")
            yield Label(
                f"{format_currency(self.item.uprice)} × {self.item.qty}",
                classes="label-item-price",
            )
        with Horizontal(classes="div-actions"):
            yield Button("-", classes="btn-dec")
            yield Label(str(self.item.qty), classes="label-item-qty")
            yield Button("+", classes="btn-inc")

    @on(Button.Pressed, ".btn-dec")
    def handle_decrement(self, event: Button.Pressed) -> None:
        event.stop()
        self.app.state.remove_product(self.item.pid)
        self.post_message(CurrentOrderChangedMessage())

    @on(Button.Pressed, ".btn-inc")
    def handle_increment(self, event: Button.Pressed) -> None:
        event.stop()
        self.app.state.increment(self.item.pid)
        self.post_message(CurrentOrderChangedMessage())


class SalesScreen(BaseScreen):
    """
    Order entry: pick products on the left, build and check out the
    current order on the right, recent orders underneath.
    """

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-sales"):
            with Vertical(id="div-products"):
                yield Label("Products", classes="section-title")
                yield DataTable(id="table-products")
                yield Button("Add to Order", id="btn-add", variant="primary")
            with Vertical(id="div-current-order"):
                yield Label("Current Order", classes="section-title")
                yield VerticalScroll(id="vertscroll-order")
                yield Label("Total: $0.00", id="label-order-total")
                yield Rule(line_style="dashed")
                with Horizontal(id="hort-order-buttons"):
                    yield Button("Reset Order", id="btn-reset")
                    yield Button("Checkout", id="btn-checkout", variant="success")
        yield Label("Recent Orders", classes="section-title")
        yield DataTable(id="table-recent")

    def on_mount(self) -> None:
        products_table = self.query_one("#table-products", DataTable)
        products_table.cursor_type = "row"
        products_table.zebra_stripes = True
        products_table.add_columns("Product", "Price")

        recent_table = self.query_one("#table-recent", DataTable)
        recent_table.cursor_type = "row"
        recent_table.add_columns("Order", "Time", "Items", "Total")

        self.handle_order_change()

    @on(ScreenResume)
    @on(ProductsChangedMessage)
    @work(exclusive=True, group="sales-load")
    async def handle_reload(self) -> None:
        """Products may have changed in the inventory screen meanwhile."""
        products = await crud.list_products()
        self._products = {p.pid: p for p in products}

        table = self.query_one("#table-products", DataTable)
        table.clear()
        for p in products:
            table.add_row(p.name, format_currency(p.sale_price), key=p.pid)

        self.load_recent_orders()

    @on(NewOrderMessage)
    @work(exclusive=True, group="sales-recent")
    async def load_recent_orders(self) -> None:
        orders = await crud.recent_orders(5)
        table = self.query_one("#table-recent", DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.ono,
                o.odate.strftime("%I:%M:%S %p"),
                f"{o.item_count} items",
                format_currency(o.total),
            )

    def _selected_product(self) -> Product | None:
        table = self.query_one("#table-products", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return self._products.get(row_key.value)

    def _add(self, product: Product | None) -> None:
        if product is None:
            self.notify("No product selected.", severity="warning")
            return
        self.app.state.add_product(product)
        self.post_message(CurrentOrderChangedMessage())

    @on(DataTable.RowSelected, "#table-products")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        self._add(self._products.get(event.row_key.value))

    @on(Button.Pressed, "#btn-add")
    def handle_add(self) -> None:
        self._add(self._selected_product())

    @on(CurrentOrderChangedMessage)
    @work(exclusive=True, group="sales-order")  # exclusive, else remounts race
    async def handle_order_change(self) -> None:
        state = self.app.state
        content = self.query_one("#vertscroll-order", VerticalScroll)
        await content.remove_children()
        await content.mount_all([OrderItemWidget(item) for item in state.current_order])

        if not state.current_order:
            content.add_class("no-items")
        else:
            content.remove_class("no-items")

        self.query_one("#label-order-total", Label).update(
            f"Total: {format_currency(state.order_total)}"
        )
        self.query_one("#btn-reset", Button).disabled = not state.current_order

    @on(Button.Pressed, "#btn-reset")
    def handle_reset(self) -> None:
        self.app.state.reset_order()
        self.post_message(CurrentOrderChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work(exclusive=True, group="sales-checkout")
    async def handle_checkout(self) -> None:
        if not self.app.state.current_order:
            self.notify(
                "Please add items to your order before checkout",
                title="Empty Order",
                severity="error",
            )
            return

        try:
            order = await self.app.state.checkout()
        except ValueError as e:
            self.notify(str(e), title="Checkout failed", severity="error")
            return

        self.post_message(CurrentOrderChangedMessage())
        self.app.post_message(NewOrderMessage(order.ono))
        self.notify(f"Order #{order.ono} has been saved", title="Order Completed")
