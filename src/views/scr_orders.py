import os
from math import ceil
from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer

import db.crud as crud
from db.models import Order
from utils.messages import NewOrderMessage
from utils.pure import format_currency, generate_markdown_table, summarize_items
from views.base_screen import BaseScreen
from views.modal_dialog import PathInputModal

PAGE_SIZE = 10


class OrdersScreen(BaseScreen):
    """
    Order history, newest first, searchable by order id.

    Layout:
    - Search box with export, backup and import buttons at the top.
    - Markdown detail of the highlighted order.
    - Orders table, PAGE_SIZE per page with Prev/Next.
    """

    # Show some hints in footer
    BINDINGS = [
        Binding("ctrl+e", "export", "Export CSV", show=True),
    ]

    page_idx = reactive(1, init=False)
    page_cnt = reactive(1)
    query_str = reactive("")

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-orders-search"):
            yield Input(id="input-search", placeholder="Search by order ID...")
            yield Button("Export", id="btn-export")
            yield Button("Backup", id="btn-backup")
            yield Button("Import", id="btn-import")
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Label(" 1 / 1 ", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order ID", "Date & Time", "Items", "Total", "Profit")

    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self) -> None:
        self._load_orders(self.page_idx)

    @on(Input.Changed, "#input-search")
    def handle_search(self, event: Input.Changed) -> None:
        self.query_str = event.value
        if self.page_idx != 1:
            self.page_idx = 1  # watcher reloads
        else:
            self._load_orders(1)

    def watch_page_idx(self, old: int, new: int) -> None:
        self._load_orders(new)

    def _refresh_buttons(self) -> None:
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        self.query_one("#label-page", Label).update(
            f" {self.page_idx} / {self.page_cnt} "
        )

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    @work(exclusive=True, group="orders")
    async def _load_orders(self, page: int) -> None:
        orders, total = await crud.list_orders(self.query_str, page, PAGE_SIZE)
        self._orders = {o.ono: o for o in orders}

        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.ono,
                o.odate.strftime("%m/%d/%Y %I:%M:%S %p"),
                summarize_items(o.items),
                format_currency(o.total),
                format_currency(o.profit),
                key=o.ono,
            )
        self.page_cnt = max(ceil(total / PAGE_SIZE), 1)
        self._refresh_buttons()

        if orders:
            table.cursor_coordinate = (0, 0)
            self._render_detail(orders[0])
        else:
            self._render_detail(None)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        order = self._orders.get(event.row_key.value)
        if order:
            self._render_detail(order)

    def _render_detail(self, order: Order | None) -> None:
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if not order:
            if self.query_str:
                viewer.document.update("### No orders found matching your search")
            else:
                viewer.document.update("### No orders available")
            return

        header = (
            f"### Order #{order.ono}\n"
            f"Date: {order.odate.strftime('%m/%d/%Y %I:%M:%S %p')}\n\n"
        )
        rows: List[List[str]] = [
            [
                item.name,
                item.qty,
                format_currency(item.uprice),
                format_currency(item.line_total),
            ]
            for item in order.items
        ]
        table = generate_markdown_table(
            ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
        )
        footer = (
            f"\n\n**Total:** {format_currency(order.total)}  \n"
            f"**Cost:** {format_currency(order.cost)}  \n"
            f"**Profit:** {format_currency(order.profit)}"
        )
        viewer.document.update(header + table + footer)

    @on(Button.Pressed, "#btn-export")
    def handle_export_pressed(self) -> None:
        self.action_export()

    @work(exclusive=True, group="orders-export")
    async def action_export(self) -> None:
        """Export every order matching the current search, not just this page."""
        orders = await crud.search_orders(self.query_str)
        try:
            path = crud.export_orders_csv(orders, crud.EXPORT_DIR)
        except (ValueError, OSError) as e:
            self.notify(str(e), title="Export failed", severity="error")
            return
        self.notify(f"{len(orders)} orders exported to {path}", title="Export Complete")

    @on(Button.Pressed, "#btn-backup")
    @work(exclusive=True, group="orders-csv")
    async def handle_backup(self) -> None:
        path = await self.app.push_screen_wait(
            PathInputModal(
                "Back up all orders to CSV",
                os.path.join(crud.EXPORT_DIR, "orders.csv"),
                "Back up",
            )
        )
        if not path:
            return
        try:
            out = await crud.export_orders_backup(path)
        except (ValueError, OSError) as e:
            self.notify(str(e), title="Backup failed", severity="error")
            return
        self.notify(f"Orders backed up to {out}", title="Backup Complete")

    @on(Button.Pressed, "#btn-import")
    @work(exclusive=True, group="orders-csv")
    async def handle_import(self) -> None:
        path = await self.app.push_screen_wait(
            PathInputModal(
                "Import orders from a backup CSV (replaces the order history)",
                os.path.join(crud.EXPORT_DIR, "orders.csv"),
                "Import",
            )
        )
        if not path:
            return
        try:
            orders = await crud.import_orders_file(path)
        except OSError as e:
            self.notify(f"Could not read {path}: {e}", severity="error")
            return
        if not orders:
            self.notify("No orders found in file.", severity="error")
            return
        self.notify(f"Imported {len(orders)} orders.", title="Import Complete")
        self.app.post_message(NewOrderMessage())
