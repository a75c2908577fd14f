"""Toast-style notifications raised by the execution view."""

import sys
from collections import deque
from dataclasses import asdict, dataclass, field

from app.utils.helpers import utc_now_iso


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    variant: str = "default"
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


class Notifier:
    """Keeps the most recent notifications and echoes them to the log."""

    def __init__(self, history: int = 50):
        self._items: deque[Notification] = deque(maxlen=max(1, history))

    def notify(self, title: str, description: str = "", variant: str = "default") -> Notification:
        item = Notification(title=title, description=description, variant=variant)
        self._items.append(item)
        stream = sys.stderr if variant == "destructive" else sys.stdout
        print(f"[notify] {variant}: {title} - {description}", file=stream, flush=True)
        return item

    def history(self) -> list[Notification]:
        return list(self._items)

    def clear(self):
        self._items.clear()
