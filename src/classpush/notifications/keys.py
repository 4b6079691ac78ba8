"""P-256 key material: the VAPID pair, ephemeral pairs and ECDH."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from classpush.notifications.errors import ConfigError, CryptoError
from classpush.notifications.models import (
    P256_POINT_SIZE,
    b64url_decode,
    b64url_encode,
)

logger = structlog.get_logger()

_CURVE = ec.SECP256R1()
_SCALAR_SIZE = 32


def public_key_bytes(key: ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed X9.62 point (0x04 || x || y)."""
    return key.public_bytes(
        encoding=Encoding.X962,
        format=PublicFormat.UncompressedPoint,
    )


@dataclass(frozen=True)
class VapidKeyPair:
    """Long-lived application server key pair.

    Built once at startup and shared read-only.
    """

    private_key: ec.EllipticCurvePrivateKey
    public_key: bytes

    @property
    def public_key_b64(self) -> str:
        """Application server key as sent to browsers."""
        return b64url_encode(self.public_key)

    @property
    def private_key_b64(self) -> str:
        scalar = self.private_key.private_numbers().private_value
        return b64url_encode(scalar.to_bytes(_SCALAR_SIZE, "big"))

    def __repr__(self) -> str:
        return f"VapidKeyPair(public_key={self.public_key_b64!r})"


@dataclass(frozen=True)
class EphemeralKeyPair:
    """Single-use sender key pair for one encrypted message."""

    private_key: ec.EllipticCurvePrivateKey
    public_key: bytes

    @classmethod
    def from_private_key(cls, key: ec.EllipticCurvePrivateKey) -> "EphemeralKeyPair":
        return cls(private_key=key, public_key=public_key_bytes(key.public_key()))


def _decode_config_value(name: str, value: str | None, size: int) -> bytes:
    if not value:
        raise ConfigError(f"{name} is not configured")
    try:
        raw = b64url_decode(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} is not valid base64url") from e
    if len(raw) != size:
        raise ConfigError(f"{name} must decode to {size} bytes, got {len(raw)}")
    return raw


def load_vapid_keypair(
    public_b64url: str | None,
    private_b64url: str | None,
) -> VapidKeyPair:
    """Load the VAPID key pair from its base64url config values.

    Raises:
        ConfigError: a value is missing, malformed, off-curve, or the
            two halves do not belong together.
    """
    public_raw = _decode_config_value("VAPID public key", public_b64url, P256_POINT_SIZE)
    private_raw = _decode_config_value("VAPID private key", private_b64url, _SCALAR_SIZE)

    try:
        ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, public_raw)
    except ValueError as e:
        raise ConfigError("VAPID public key is not a valid P-256 point") from e
    try:
        private_key = ec.derive_private_key(int.from_bytes(private_raw, "big"), _CURVE)
    except ValueError as e:
        raise ConfigError("VAPID private key is not a valid P-256 scalar") from e

    if public_key_bytes(private_key.public_key()) != public_raw:
        raise ConfigError("VAPID public key does not match the private key")
    return VapidKeyPair(private_key=private_key, public_key=public_raw)


def generate_vapid_keypair() -> VapidKeyPair:
    """Create a fresh VAPID key pair."""
    key = ec.generate_private_key(_CURVE)
    return VapidKeyPair(private_key=key, public_key=public_key_bytes(key.public_key()))


def generate_ephemeral_keypair() -> EphemeralKeyPair:
    """New sender key pair. Call once per message, never cache."""
    return EphemeralKeyPair.from_private_key(ec.generate_private_key(_CURVE))


def load_public_point(raw: bytes) -> ec.EllipticCurvePublicKey:
    """Parse an uncompressed P-256 point, rejecting off-curve input."""
    if len(raw) != P256_POINT_SIZE or raw[0] != 0x04:
        raise CryptoError("public key is not an uncompressed P-256 point")
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, raw)
    except ValueError as e:
        raise CryptoError("public key is not on the P-256 curve") from e


def ecdh(local_private: ec.EllipticCurvePrivateKey, remote_public: bytes) -> bytes:
    """32-byte ECDH shared secret with a raw remote point.

    Raises:
        CryptoError: remote_public is off-curve or otherwise invalid.
    """
    peer = load_public_point(remote_public)
    try:
        return local_private.exchange(ec.ECDH(), peer)
    except ValueError as e:
        raise CryptoError("ECDH key agreement failed") from e


def load_or_create_vapid_keys(state_dir: str | Path) -> VapidKeyPair:
    """Load or auto-generate a VAPID key pair in the state directory.

    Used when no keys are configured in the environment. The private
    key is written with owner-only permissions.
    """
    state_dir = Path(state_dir)
    json_path = state_dir / "vapid_keys.json"
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"cannot create VAPID key directory: {state_dir}") from e

    if json_path.exists():
        try:
            keys = json.loads(json_path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"unreadable VAPID key file: {json_path}") from e
        if not isinstance(keys, dict):
            raise ConfigError(f"unreadable VAPID key file: {json_path}")
        return load_vapid_keypair(keys.get("public_key"), keys.get("private_key"))

    vapid = generate_vapid_keypair()
    try:
        fd = os.open(json_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(
                {
                    "public_key": vapid.public_key_b64,
                    "private_key": vapid.private_key_b64,
                },
                f,
            )
    except OSError as e:
        raise ConfigError(f"cannot write VAPID key file: {json_path}") from e
    logger.info("vapid_keys_generated", path=str(json_path))
    return vapid
