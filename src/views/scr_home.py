from textual import on, work
from textual.app import ComposeResult
from textual.containers import Grid, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, Label, Markdown

import db.crud as crud
from utils.messages import ModeSwitchedMessage
from utils.pure import format_currency
from views.base_screen import BaseScreen

SECTIONS = {
    "sales": ("Sales", "Process orders and checkout"),
    "inventory": ("Inventory", "Manage your products and prices"),
    "analytics": ("Analytics", "View sales data and insights"),
    "orders": ("Orders", "View and export order history"),
}


class HomeScreen(BaseScreen):
    """Landing page with a shortcut card per section."""

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-home"):
            yield Label("StallMate POS", id="label-home-title")
            yield Label(
                "Simple point of sale system for your food stall",
                id="label-home-tagline",
            )
            with Grid(id="grid-sections"):
                for mode, (title, descr) in SECTIONS.items():
                    with Vertical(classes="card"):
                        yield Label(title, classes="card-title")
                        yield Label(descr, classes="card-descr")
                        yield Button(f"Go to {title}", id=f"btn-goto-{mode}")
            yield Markdown("", id="md-home-today")

    @on(Button.Pressed)
    async def handle_goto(self, event: Button.Pressed) -> None:
        if not event.button.id or not event.button.id.startswith("btn-goto-"):
            return
        mode = event.button.id.removeprefix("btn-goto-")
        self.app.post_message(ModeSwitchedMessage(self.app.current_mode, mode))
        await self.app.switch_mode(mode)

    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        summary = await crud.sales_summary("today")
        await self.query_one("#md-home-today", Markdown).update(
            f"**Today:** {summary['total_orders']} orders, "
            f"{format_currency(summary['total_revenue'])} revenue, "
            f"{format_currency(summary['total_profit'])} profit"
        )
