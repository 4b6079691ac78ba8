import os
from dataclasses import dataclass

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from classpush.config import Settings, override_settings
from classpush.notifications.keys import (
    VapidKeyPair,
    generate_vapid_keypair,
    public_key_bytes,
)
from classpush.notifications.models import PushSubscription, b64url_encode

ENDPOINT = "https://fcm.googleapis.com/fcm/send/dK9x-abc:APA91bH"


@pytest.fixture(autouse=True)
def _test_settings(tmp_path):
    """Override settings so tests use an isolated state dir."""
    override_settings(
        Settings(
            state_dir=str(tmp_path),
        )
    )
    yield
    override_settings(None)


@dataclass
class Subscriber:
    """A simulated browser: private key plus the subscription it hands out."""

    private_key: ec.EllipticCurvePrivateKey
    auth_secret: bytes
    subscription: PushSubscription


def make_subscriber(endpoint: str = ENDPOINT) -> Subscriber:
    key = ec.generate_private_key(ec.SECP256R1())
    auth = os.urandom(16)
    return Subscriber(
        private_key=key,
        auth_secret=auth,
        subscription=PushSubscription(
            endpoint=endpoint,
            p256dh=b64url_encode(public_key_bytes(key.public_key())),
            auth=b64url_encode(auth),
        ),
    )


@pytest.fixture
def subscriber() -> Subscriber:
    return make_subscriber()


@pytest.fixture
def vapid() -> VapidKeyPair:
    return generate_vapid_keypair()

