import threading
from collections import OrderedDict


class RecentMessageIds:
    """Bounded memory of inbound message ids.

    Meta delivers webhooks at least once; a message id seen before is a
    redelivery and must not be handled twice.
    """

    def __init__(self, max_size: int = 5_000):
        self.max_size = max_size
        self._ids: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def first_time(self, message_id: str | None) -> bool:
        """Record ``message_id``; False if it was already recorded."""
        if not message_id:
            return True
        with self._lock:
            if message_id in self._ids:
                return False
            self._ids[message_id] = None
            while len(self._ids) > self.max_size:
                self._ids.popitem(last=False)
            return True
