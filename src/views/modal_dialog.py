from typing import Dict, Literal, Tuple

from typing_extensions import override

from textual import on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.events import Key, Resize
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from utils.messages import QuitRequestedMessage

Tone = Literal["default", "positive", "warning", "error"]


class DialogModal(ModalScreen[bool]):
    """
    A yes/no dialog box; dismisses with True for the primary button.
    """

    VARIANT_MAP: Dict[
        str, Tuple[Literal["primary", "default", "success", "warning", "error"], ...]
    ] = {
        "default": ("primary", "default"),
        "positive": ("success", "default"),
        "warning": ("warning", "default"),
        "error": ("error", "primary"),
    }

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Tone = "default",
    ):
        super().__init__()
        self.caption = caption
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        with Container(classes="div-dialog"):
            yield Label(self.caption, classes="caption")
            with Horizontal(classes="dialog-buttons"):
                if self.secondary_text:
                    yield Button(
                        self.secondary_text,
                        variant=DialogModal.VARIANT_MAP[self.tone][1],
                        id="btn-secondary",
                    )
                yield Button(
                    self.primary_text,
                    variant=DialogModal.VARIANT_MAP[self.tone][0],
                    id="btn-primary",
                )

    def on_mount(self):
        # destructive dialogs focus the safe answer
        if self.secondary_text and self.tone == "error":
            self.query_one("#btn-secondary").focus()
        else:
            self.query_one("#btn-primary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.dismiss(True)
        if event.button.id == "btn-secondary":
            self.dismiss(False)


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    @override
    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)


class PathInputModal(ModalScreen[str | None]):
    """
    Ask for a file path, used by CSV import and export.
    Dismisses with the entered path, or None when cancelled.
    """

    def __init__(self, caption: str, default_path: str = "", action_text: str = "OK"):
        super().__init__()
        self.caption = caption
        self.default_path = default_path
        self.action_text = action_text

    def compose(self) -> ComposeResult:
        with Container(classes="div-dialog"):
            yield Label(self.caption, classes="caption")
            yield Input(value=self.default_path, id="input-path")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Cancel", id="btn-cancel")
                yield Button(self.action_text, id="btn-ok", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-path", Input).focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Input.Submitted, "#input-path")
    @on(Button.Pressed, "#btn-ok")
    def handle_ok(self) -> None:
        path_input = self.query_one("#input-path", Input)
        path = path_input.value.strip()
        if not path:
            path_input.add_class("-invalid")
            self.notify("A file path is required.", severity="error")
            return
        self.dismiss(path)

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(None)


class ResizeScreenPromptModal(ModalScreen[bool]):
    """
    Shown while the terminal is smaller than the layouts need.
    """

    def __init__(self, min_width: int = 80, min_height: int = 24) -> None:
        super().__init__()
        self.min_width = min_width
        self.min_height = min_height

    def compose(self) -> ComposeResult:
        with Container(id="div-resize"):
            yield Label(
                f"Resize the terminal to at least {self.min_width}x{self.min_height}",
                id="prompt",
            )

    def on_resize(self, event: Resize) -> None:
        if (
            event.size.width >= self.min_width
            and event.size.height >= self.min_height
        ):
            self.dismiss(True)
