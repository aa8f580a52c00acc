from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class CurrentOrderChangedMessage(Message):
    """
    Fired whenever an item is added to, decremented in, or removed from the
    order being built on the sales screen.
    """

    bubble = True


class ProductsChangedMessage(Message):
    """
    Fired after the inventory is modified (add, update, delete, import).
    Post at App level; the app forwards it to the screens of the current mode.
    """

    bubble = True

    def forward(self) -> "ProductsChangedMessage":
        """Copy for a screen, which must not bubble back up to the app."""
        message = ProductsChangedMessage()
        message.bubble = False
        return message


class NewOrderMessage(Message):
    """
    Fired when an order is checked out or orders are imported.
    Post at App level; the app forwards it to the screens of the current mode.
    """

    bubble = True

    def __init__(self, ono: str | None = None) -> None:
        super().__init__()
        self.ono = ono

    def forward(self) -> "NewOrderMessage":
        """Copy for a screen, which must not bubble back up to the app."""
        message = NewOrderMessage(self.ono)
        message.bubble = False
        return message


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
