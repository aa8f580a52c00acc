from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

import db.crud as crud
from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    NewOrderMessage,
    ProductsChangedMessage,
    QuitRequestedMessage,
)
from utils.state import GlobalState
from views.scr_analytics import AnalyticsScreen
from views.scr_home import HomeScreen
from views.scr_inventory import InventoryScreen
from views.scr_orders import OrdersScreen
from views.scr_sales import SalesScreen

_logger = get_logger(__name__)


class StallMateApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "home": HomeScreen,
        "sales": SalesScreen,
        "inventory": InventoryScreen,
        "analytics": AnalyticsScreen,
        "orders": OrdersScreen,
    }

    # sidebar menu, in display order
    MENU = {
        "home": "Home",
        "sales": "Sales",
        "inventory": "Inventory",
        "analytics": "Analytics",
        "orders": "Orders",
    }

    CSS_PATH = [
        "views/styles/index.tcss",
        "views/styles/home.tcss",
        "views/styles/sales.tcss",
        "views/styles/inventory.tcss",
        "views/styles/orders.tcss",
        "views/styles/analytics.tcss",
    ]

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(QuitRequestedMessage)
    def handle_quit(self):
        if self.state.current_order:
            _logger.info(
                f"Quitting with {self.state.item_count} unsaved items in the current order"
            )
        self.exit()

    @on(NewOrderMessage)
    @on(ProductsChangedMessage)
    def handle_data_changed(self, message: NewOrderMessage | ProductsChangedMessage) -> None:
        # screens of the current mode reload from the db
        for screen in self.screen_stack:
            screen.post_message(message.forward())

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage) -> None:
        _logger.debug(f"Switching mode {message.old_mode!r} -> {message.new_mode!r}")

    @work
    async def main_flow(self):
        # bring back products / orders from the CSV mirror if their tables were emptied
        restored = await crud.check_and_restore_data()
        if restored["products"] or restored["orders"]:
            self.notify(
                f"Restored {restored['products']} products and "
                f"{restored['orders']} orders from backup.",
                title="Data Restored",
            )
        self.post_message(ModeSwitchedMessage(self.current_mode, "home"))
        await self.switch_mode("home")


def run() -> None:
    StallMateApp().run()


if __name__ == "__main__":
    run()
