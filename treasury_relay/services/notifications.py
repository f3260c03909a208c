import logging
import threading
from collections import defaultdict
from decimal import Decimal
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

BalanceCallback = Callable[[str, Decimal], None]


class BalanceNotifier:
    """
    In-process pub/sub for balance changes.

    Publishing is fire-and-forget: it runs after the ledger commit and a
    failing subscriber never affects the caller or the other subscribers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_username: Dict[str, List[BalanceCallback]] = defaultdict(list)
        self._global: List[BalanceCallback] = []

    def on_balance_changed(self, username: str, callback: BalanceCallback) -> Callable[[], None]:
        """Subscribe to one username. Returns a function that unsubscribes."""
        with self._lock:
            self._by_username[username].append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._by_username.get(username, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._by_username.pop(username, None)

        return unsubscribe

    def on_any_balance_changed(self, callback: BalanceCallback) -> Callable[[], None]:
        with self._lock:
            self._global.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._global:
                    self._global.remove(callback)

        return unsubscribe

    def publish(self, username: str, new_balance: Decimal) -> None:
        with self._lock:
            callbacks = list(self._by_username.get(username, [])) + list(self._global)

        for callback in callbacks:
            try:
                callback(username, new_balance)
            except Exception:
                logger.exception("Balance subscriber failed for %s", username)


# Process-wide notifier used by the API
notifier = BalanceNotifier()
