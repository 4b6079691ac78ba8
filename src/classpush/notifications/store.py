"""JSON-file-backed push subscription store."""

import json
import threading
from dataclasses import asdict, dataclass
from pathlib import Path

from classpush.notifications.models import PushSubscription


@dataclass(frozen=True)
class StoredSubscription:
    """A Web Push subscription owned by a user."""

    user_id: str
    subscription: PushSubscription

    @property
    def endpoint(self) -> str:
        return self.subscription.endpoint

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, **asdict(self.subscription)}

    @classmethod
    def from_dict(cls, data: dict) -> "StoredSubscription":
        data = dict(data)
        return cls(user_id=data.pop("user_id"), subscription=PushSubscription(**data))


class PushSubscriptionStore:
    """Minimal push subscription store backed by a JSON file.

    A user may hold several subscriptions, one per browser/device.
    Writers run both on the event loop (subscribe/unsubscribe) and in
    delivery worker threads (endpoint pruning), so every
    read-modify-write and file save happens under one lock.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._subs: list[StoredSubscription] = []
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            self._subs = []
            return
        try:
            data = json.loads(self._path.read_text())
            self._subs = [StoredSubscription.from_dict(s) for s in data]
        except (json.JSONDecodeError, OSError, TypeError, KeyError):
            self._subs = []

    def _save(self) -> None:
        # caller holds self._lock
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps([s.to_dict() for s in self._subs], indent=2))

    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
    ) -> None:
        """Add or upsert a subscription."""
        entry = StoredSubscription(
            user_id=user_id,
            subscription=PushSubscription(endpoint=endpoint, p256dh=p256dh, auth=auth),
        )
        with self._lock:
            # Remove existing match (upsert)
            self._subs = [
                s
                for s in self._subs
                if not (s.endpoint == endpoint and s.user_id == user_id)
            ]
            self._subs.append(entry)
            self._save()

    def unsubscribe(self, user_id: str, endpoint: str) -> None:
        """Remove one of a user's subscriptions."""
        with self._lock:
            before = len(self._subs)
            self._subs = [
                s
                for s in self._subs
                if not (s.endpoint == endpoint and s.user_id == user_id)
            ]
            if len(self._subs) != before:
                self._save()

    def get_subscriptions_for_user(self, user_id: str) -> list[StoredSubscription]:
        """All subscriptions registered by a user."""
        with self._lock:
            return [s for s in self._subs if s.user_id == user_id]

    def get_endpoints_for_user(self, user_id: str) -> list[str]:
        with self._lock:
            return [s.endpoint for s in self._subs if s.user_id == user_id]

    def remove_endpoint(self, endpoint: str) -> None:
        """Remove every subscription for an endpoint (410 cleanup)."""
        with self._lock:
            before = len(self._subs)
            self._subs = [s for s in self._subs if s.endpoint != endpoint]
            if len(self._subs) != before:
                self._save()
