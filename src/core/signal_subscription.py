"""
Signal Subscription

Explicit handle for one signal -> slot connection. Listeners attached to a
viewport are stored as Subscription objects so they can be released exactly
once on rebind or teardown instead of being detached by name.

Requirements:
    - PySide6 signals (any bound signal instance with connect/disconnect)
"""

import warnings
from typing import Any, Callable, Iterable


class Subscription:
    """
    A live signal connection.

    disconnect() is idempotent; disconnecting a connection Qt already dropped
    (e.g. because the sender was destroyed) is tolerated.
    """

    def __init__(self, signal: Any, slot: Callable):
        self.signal = signal
        self.slot = slot
        self.connected = True
        signal.connect(slot)

    def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        with warnings.catch_warnings():
            warnings.filterwarnings('ignore', category=RuntimeWarning, message='.*Failed to disconnect.*')
            try:
                self.signal.disconnect(self.slot)
            except (TypeError, RuntimeError):
                pass

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"Subscription({getattr(self.slot, '__name__', self.slot)!r}, {state})"


def disconnect_all(subscriptions: Iterable[Subscription]) -> None:
    """Disconnect every subscription in an iterable."""
    for subscription in subscriptions:
        subscription.disconnect()
