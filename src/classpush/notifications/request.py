"""Outbound HTTP request for a single encrypted push message."""

import re
from dataclasses import dataclass, field

from classpush.notifications.encryption import EncryptedRecord
from classpush.notifications.errors import ValidationError
from classpush.notifications.models import SubscriberKeys

URGENCIES = ("very-low", "low", "normal", "high")

_TOPIC_RE = re.compile(r"^[A-Za-z0-9_-]{1,32}$")


@dataclass(frozen=True)
class PushRequest:
    """Exact request to hand to the transport."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    method: str = "POST"


def build_request(
    subscriber: SubscriberKeys,
    record: EncryptedRecord,
    vapid_header: str,
    ttl: int,
    *,
    urgency: str | None = None,
    topic: str | None = None,
) -> PushRequest:
    """Assemble method, headers and body for the push service."""
    if ttl < 0:
        raise ValidationError(f"TTL must be non-negative, got {ttl}")

    headers = {
        "Authorization": vapid_header,
        "Content-Encoding": "aes128gcm",
        "Content-Type": "application/octet-stream",
        "TTL": str(ttl),
    }
    if urgency is not None:
        if urgency not in URGENCIES:
            raise ValidationError(f"unknown urgency: {urgency!r}")
        headers["Urgency"] = urgency
    if topic is not None:
        # RFC 8030 §5.4: at most 32 characters from the base64url alphabet
        if not _TOPIC_RE.match(topic):
            raise ValidationError(f"invalid topic: {topic!r}")
        headers["Topic"] = topic

    return PushRequest(url=subscriber.endpoint, headers=headers, body=record.body)
