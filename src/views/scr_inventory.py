from __future__ import annotations

import os
from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label

import db.crud as crud
from db.models import Product
from utils.messages import ProductsChangedMessage
from utils.pure import format_currency, to_float
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, PathInputModal


class InventoryScreen(BaseScreen):
    """
    Manage the products and their cost / sale prices.
    Select a row to edit it; the form adds a new product otherwise.
    """

    editing: Optional[Product] = None

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-inventory"):
            with Vertical(id="div-product-list"):
                yield Label("Products", classes="section-title")
                yield DataTable(id="table-inventory")
                with Horizontal(id="hort-list-buttons"):
                    yield Button("Delete", id="btn-delete", variant="error")
                    yield Button("Import CSV", id="btn-import")
                    yield Button("Export CSV", id="btn-export")
            with Vertical(id="div-product-form"):
                yield Label("Add New Product", id="label-form-title", classes="section-title")
                yield Label("Product Name")
                yield Input(id="input-name", placeholder="e.g. Chicken Burger")
                yield Label("Cost Price ($)")
                yield Input(
                    id="input-cost",
                    placeholder="0.00",
                    type="number",
                    validators=[Number(minimum=0.0)],
                )
                yield Label("Sale Price ($)")
                yield Input(
                    id="input-sale",
                    placeholder="0.00",
                    type="number",
                    validators=[Number(minimum=0.0)],
                )
                with Horizontal(id="hort-form-buttons"):
                    yield Button("Cancel", id="btn-cancel")
                    yield Button("Add Product", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Cost Price", "Sale Price")
        self._set_editing(None)

    @on(ScreenResume)
    @on(ProductsChangedMessage)
    @work(exclusive=True, group="inventory-load")
    async def handle_reload(self) -> None:
        products = await crud.list_products()
        self._products = {p.pid: p for p in products}

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.pid,
                p.name,
                format_currency(p.cost_price),
                format_currency(p.sale_price),
                key=p.pid,
            )
        self.query_one("#btn-delete", Button).disabled = not products

    def _set_editing(self, product: Optional[Product]) -> None:
        self.editing = product
        name_input = self.query_one("#input-name", Input)
        cost_input = self.query_one("#input-cost", Input)
        sale_input = self.query_one("#input-sale", Input)
        if product is None:
            name_input.value = ""
            cost_input.value = ""
            sale_input.value = ""
            self.query_one("#label-form-title", Label).update("Add New Product")
            self.query_one("#btn-save", Button).label = "Add Product"
            self.query_one("#btn-cancel", Button).display = False
        else:
            name_input.value = product.name
            cost_input.value = f"{product.cost_price:.2f}"
            sale_input.value = f"{product.sale_price:.2f}"
            self.query_one("#label-form-title", Label).update(f"Edit {product.pid}")
            self.query_one("#btn-save", Button).label = "Update Product"
            self.query_one("#btn-cancel", Button).display = True

    def _highlighted_product(self) -> Optional[Product]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return self._products.get(row_key.value)

    @on(DataTable.RowSelected)
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        product = self._products.get(event.row_key.value)
        if product:
            self._set_editing(product)
            self.query_one("#input-name", Input).focus()

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self._set_editing(None)

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="inventory-save")
    async def handle_save(self) -> None:
        name_input = self.query_one("#input-name", Input)
        name = name_input.value.strip()
        if not name:
            name_input.focus()
            name_input.add_class("-invalid")
            self.notify("Please enter a product name", title="Missing Information", severity="error")
            return

        cost_input = self.query_one("#input-cost", Input)
        sale_input = self.query_one("#input-sale", Input)
        for price_input in (cost_input, sale_input):
            # blank means 0
            if not price_input.value.strip():
                continue
            result = price_input.validate(price_input.value)
            if result is not None and not result.is_valid:
                price_input.focus()
                price_input.add_class("-invalid")
                self.notify(
                    "Prices must be numbers of 0 or more",
                    title="Invalid Price",
                    severity="error",
                )
                return

        cost = to_float(cost_input.value)
        sale = to_float(sale_input.value)

        if self.editing is None:
            product = await crud.add_product(name, cost, sale)
            self.notify(f"{product.name} has been added to inventory", title="Product Added")
        else:
            product = Product(
                pid=self.editing.pid, name=name, cost_price=cost, sale_price=sale
            )
            await crud.save_product(product)
            self.notify(f"{product.name} has been updated", title="Product Updated")

        self._set_editing(None)
        self.app.post_message(ProductsChangedMessage())

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True, group="inventory-delete")
    async def handle_delete(self) -> None:
        product = self._highlighted_product()
        if product is None:
            self.notify("No product selected.", severity="warning")
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                f"Delete {product.name}? Past orders are kept.",
                primary_text="Delete",
                secondary_text="Keep",
                tone="error",
            )
        ):
            return

        if await crud.delete_product(product.pid):
            self.notify("The product has been removed from inventory", title="Product Deleted")
        if self.editing and self.editing.pid == product.pid:
            self._set_editing(None)
        self.app.post_message(ProductsChangedMessage())

    @on(Button.Pressed, "#btn-import")
    @work(exclusive=True, group="inventory-csv")
    async def handle_import(self) -> None:
        path = await self.app.push_screen_wait(
            PathInputModal(
                "Import products from CSV (replaces the current inventory)",
                os.path.join(crud.EXPORT_DIR, "products.csv"),
                "Import",
            )
        )
        if not path:
            return
        try:
            products = await crud.import_products_file(path)
        except OSError as e:
            self.notify(f"Could not read {path}: {e}", severity="error")
            return
        if not products:
            self.notify("No products found in file.", severity="error")
            return
        self.notify(f"Imported {len(products)} products.")
        self._set_editing(None)
        self.app.post_message(ProductsChangedMessage())

    @on(Button.Pressed, "#btn-export")
    @work(exclusive=True, group="inventory-csv")
    async def handle_export(self) -> None:
        path = await self.app.push_screen_wait(
            PathInputModal(
                "Export products to CSV",
                os.path.join(crud.EXPORT_DIR, "products.csv"),
                "Export",
            )
        )
        if not path:
            return
        try:
            out = await crud.export_products_csv(path)
        except (ValueError, OSError) as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Products exported to {out}")
