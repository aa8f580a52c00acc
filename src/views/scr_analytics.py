import asyncio

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Label, MarkdownViewer, Select

import db.crud as crud
from utils.messages import NewOrderMessage, ProductsChangedMessage
from utils.pure import PERIODS, format_currency, generate_markdown_table
from views.base_screen import BaseScreen

NO_DATA = "No sales data available for the selected period"


class AnalyticsScreen(BaseScreen):
    """
    Sales totals and per-product performance for a chosen period.
    """

    period = "today"

    def __init__(self) -> None:
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-period"):
                yield Label("Period:")
                yield Select(
                    [(label, key) for key, label in PERIODS.items()],
                    value=self.period,
                    allow_blank=False,
                    id="select-period",
                )
            yield MarkdownViewer(id="md-analytics", show_table_of_contents=False)

    @on(Select.Changed, "#select-period")
    def handle_period_change(self, event: Select.Changed) -> None:
        self.period = str(event.value)
        self.handle_reload()

    @on(NewOrderMessage)
    @on(ProductsChangedMessage)
    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        summary, stats = await asyncio.gather(
            crud.sales_summary(self.period), crud.product_stats(self.period)
        )

        totals_md = (
            f"### Summary: {PERIODS.get(self.period, self.period)}\n\n"
            f"- Total Orders: {summary['total_orders']}\n"
            f"- Total Revenue: {format_currency(summary['total_revenue'])}\n"
            f"- Total Cost: {format_currency(summary['total_cost'])}\n"
            f"- Total Profit: {format_currency(summary['total_profit'])}\n\n"
        )

        if stats:
            rows = [
                [
                    s.name,
                    s.quantity,
                    format_currency(s.revenue),
                    format_currency(s.vendor_payment),
                    format_currency(s.profit),
                ]
                for s in stats
            ]
            table_md = generate_markdown_table(
                ["Product", "Quantity Sold", "Revenue", "Vendor Payment", "Profit"],
                rows,
                ["l", "r", "r", "r", "r"],
            )
        else:
            table_md = f"_{NO_DATA}_"

        await self.query_one("#md-analytics", MarkdownViewer).document.update(
            totals_md + "### Product Performance\n\n" + table_md
        )
