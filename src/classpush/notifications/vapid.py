"""VAPID (RFC 8292) authorization header for Web Push requests."""

import json
import time
from urllib.parse import urlsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
)

from classpush.notifications.errors import ConfigError, ValidationError
from classpush.notifications.keys import VapidKeyPair
from classpush.notifications.models import b64url_encode

DEFAULT_TOKEN_EXPIRATION = 12 * 3600
MAX_TOKEN_EXPIRATION = 24 * 3600

_JWT_HEADER = {"typ": "JWT", "alg": "ES256"}
_CONTACT_SCHEMES = ("mailto", "https")


def _json_segment(obj: dict) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode())


def validate_contact_uri(uri: str) -> str:
    """Accept only mailto: and https: subjects."""
    parts = urlsplit(uri or "")
    if parts.scheme not in _CONTACT_SCHEMES:
        raise ConfigError(f"VAPID contact must be a mailto: or https: URI, got {uri!r}")
    if parts.scheme == "mailto" and not parts.path:
        raise ConfigError("VAPID mailto: contact has no address")
    if parts.scheme == "https" and not parts.hostname:
        raise ConfigError("VAPID https: contact has no host")
    return uri


def validate_expiration(seconds: int) -> int:
    if not 0 < seconds <= MAX_TOKEN_EXPIRATION:
        raise ConfigError(
            f"VAPID token lifetime must be within 1..{MAX_TOKEN_EXPIRATION}s, got {seconds}"
        )
    return seconds


def vapid_audience(endpoint: str) -> str:
    """Origin of the push service (scheme + host[:port]), no path."""
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as e:
        raise ValidationError(f"invalid push endpoint: {endpoint!r}") from e
    if not parts.scheme or not parts.hostname:
        raise ValidationError(f"invalid push endpoint: {endpoint!r}")
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    if port is not None:
        host = f"{host}:{port}"
    return f"{parts.scheme}://{host}"


def sign_es256(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """ECDSA P-256/SHA-256 signature in raw r || s form (64 bytes).

    cryptography emits DER; JWS requires the fixed-width P1363
    encoding, so the integers are re-packed here.
    """
    der = private_key.sign(data, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def build_vapid_jwt(
    vapid: VapidKeyPair,
    endpoint: str,
    contact_uri: str,
    *,
    expiration: int = DEFAULT_TOKEN_EXPIRATION,
    now: int | None = None,
) -> str:
    """Signed compact JWT asserting the sender to the push service."""
    validate_contact_uri(contact_uri)
    validate_expiration(expiration)
    issued = int(time.time()) if now is None else now
    claims = {
        "aud": vapid_audience(endpoint),
        "exp": issued + expiration,
        "sub": contact_uri,
    }
    signing_input = f"{_json_segment(_JWT_HEADER)}.{_json_segment(claims)}"
    signature = sign_es256(vapid.private_key, signing_input.encode())
    return f"{signing_input}.{b64url_encode(signature)}"


def build_vapid_header(
    vapid: VapidKeyPair,
    endpoint: str,
    contact_uri: str,
    *,
    expiration: int = DEFAULT_TOKEN_EXPIRATION,
    now: int | None = None,
) -> str:
    """``Authorization`` header value: ``vapid t=<jwt>, k=<key>``."""
    token = build_vapid_jwt(
        vapid,
        endpoint,
        contact_uri,
        expiration=expiration,
        now=now,
    )
    return f"vapid t={token}, k={vapid.public_key_b64}"
