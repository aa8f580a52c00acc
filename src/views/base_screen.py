from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Footer, Header, Label, ListItem, ListView, Markdown

import db.crud as crud
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import format_currency, generate_markdown_table
from views.modal_dialog import QuitDialogModal, ResizeScreenPromptModal


class Sidebar(Container):
    """Menu of modes plus today's headline figures."""

    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Today", id="label-info-1")
        yield Markdown("", id="md-today")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode

        list_menu: ListView = self.query_one("#list-menu", ListView)
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(v), id="list-menu-item-" + k)
                for k, v in self.app.MENU.items()
            ]
        )
        self.highlight_item(self.init_mode)
        self.refresh_today()

    @work(exclusive=True, group="sidebar")
    async def refresh_today(self) -> None:
        summary = await crud.sales_summary("today")
        rows = [
            ["Orders", summary["total_orders"]],
            ["Revenue", format_currency(summary["total_revenue"])],
            ["Profit", format_currency(summary["total_profit"])],
        ]
        await self.query_one("#md-today", Markdown).update(
            generate_markdown_table(["Metric", "Value"], rows, ["l", "r"])
        )

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.app.post_message(
                ModeSwitchedMessage(self.app.current_mode, selected_mode)
            )
            await self.app.switch_mode(selected_mode)

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu", ListView)
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    MIN_WIDTH = 80
    MIN_HEIGHT = 24

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """

        # sub title defaults to the menu label of the mode this screen serves
        self.app.title = "StallMate POS"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in self.app.MENU:
                self.sub_title = self.app.MENU[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        if event.size.width < self.MIN_WIDTH or event.size.height < self.MIN_HEIGHT:
            self.app.push_screen(
                ResizeScreenPromptModal(self.MIN_WIDTH, self.MIN_HEIGHT)
            )

    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_sidebar_refresh(self) -> None:
        if self._show_sidebar:
            self.query_one(Sidebar).refresh_today()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
