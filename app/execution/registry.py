"""Per-(test_type, test_run) view controllers."""

import threading

from app.execution.controller import TestExecutionViewController
from app.execution.notifications import Notifier
from app.services.cache import TTLCache


class ViewRegistry:
    """Hands out one controller per key; idle views expire with the cache TTL."""

    def __init__(self, cache: TTLCache, **controller_options):
        self.cache = cache
        self.controller_options = controller_options
        self._lock = threading.Lock()

    @staticmethod
    def key(test_type: str, test_run_id: str | None) -> tuple:
        return ("execution-view", test_type, test_run_id or "")

    def get_or_create(self, client, test_type: str, test_run_id: str | None = None):
        """Return (controller, created)."""
        key = self.key(test_type, test_run_id)
        with self._lock:
            cached = self.cache.get(key)
            if cached is not None:
                controller = cached[0]
                self.cache.set(key, controller)
                return controller, False
            options = dict(self.controller_options)
            history = options.pop("notification_history", 50)
            controller = TestExecutionViewController(
                client,
                test_type,
                test_run_id,
                notifier=Notifier(history=history),
                **options,
            )
            self.cache.set(key, controller)
            return controller, True

    def discard(self, test_type: str, test_run_id: str | None = None):
        self.cache.discard(self.key(test_type, test_run_id))

    def clear(self):
        self.cache.clear()
