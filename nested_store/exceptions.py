class StoreError(Exception):
    """Base class for errors raised by the nested store."""


class KeyNotFound(StoreError, KeyError):
    """Raised by unset when the key does not currently resolve to a value."""

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self):
        return f"Key not found: {self.key!r}"


class NoActiveTransaction(StoreError, RuntimeError):
    """Raised by commit/rollback when no transaction is open."""

    def __init__(self, action):
        super().__init__(f"No active transaction to {action}")
        self.action = action
