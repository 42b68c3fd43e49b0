"""Per-session form state: the toast notification and the post-signup cooldown.

Both classes keep their state in a mutable mapping (the Flask session in the
app, a plain dict in tests) and take an injectable clock.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, MutableMapping, Optional

NOTIFICATION_KINDS = ('success', 'error')


@dataclass
class Notification:
    message: str
    kind: str
    expires_at: float

    def remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


class NotificationSlot:
    """Holds at most one notification; showing a new one replaces it and resets the timer."""

    key = 'toast'

    def __init__(self, storage: MutableMapping, timeout: float, clock: Callable[[], float] = time.time):
        self.storage = storage
        self.timeout = timeout
        self.clock = clock

    def show(self, message: str, kind: str) -> Notification:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        notification = Notification(message=message, kind=kind, expires_at=self.clock() + self.timeout)
        self.storage[self.key] = {
            'message': notification.message,
            'kind': notification.kind,
            'expires_at': notification.expires_at,
        }
        return notification

    def current(self) -> Optional[Notification]:
        data = self.storage.get(self.key)
        if not data:
            return None
        notification = Notification(message=data['message'], kind=data['kind'], expires_at=data['expires_at'])
        if notification.expires_at <= self.clock():
            self.clear()
            return None
        return notification

    def clear(self) -> None:
        self.storage.pop(self.key, None)


class SubmitCooldown:
    key = 'submit_cooldown_until'

    def __init__(self, storage: MutableMapping, window: float, clock: Callable[[], float] = time.time):
        self.storage = storage
        self.window = window
        self.clock = clock

    def start(self) -> None:
        if self.window > 0:
            self.storage[self.key] = self.clock() + self.window

    def remaining(self) -> float:
        until = self.storage.get(self.key)
        if until is None:
            return 0.0
        left = until - self.clock()
        if left <= 0:
            self.storage.pop(self.key, None)
            return 0.0
        return left

    def active(self) -> bool:
        return self.remaining() > 0
