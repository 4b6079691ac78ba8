"""Message encryption for Web Push (RFC 8291, aes128gcm per RFC 8188).

Only the single-record form is produced: the whole payload, a 0x02
delimiter and optional zero padding are sealed in one AES-128-GCM
record whose key id is the sender's ephemeral public key.
"""

import os
import struct
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from classpush.notifications.errors import CryptoError, PayloadTooLargeError
from classpush.notifications.keys import EphemeralKeyPair, ecdh, public_key_bytes
from classpush.notifications.models import P256_POINT_SIZE, SubscriberKeys

SALT_SIZE = 16
CEK_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16

WEBPUSH_INFO = b"WebPush: info\x00"
CEK_INFO = b"Content-Encoding: aes128gcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"

LAST_RECORD_DELIMITER = b"\x02"

# salt || rs || idlen || keyid
HEADER_SIZE = SALT_SIZE + 4 + 1 + P256_POINT_SIZE
MAX_RECORD_SIZE = 4096
RECORD_OVERHEAD = HEADER_SIZE + TAG_SIZE
# plaintext bytes left once header, tag and delimiter are accounted for
MAX_PAYLOAD_SIZE = MAX_RECORD_SIZE - RECORD_OVERHEAD - len(LAST_RECORD_DELIMITER)


def hkdf_sha256(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
    """HMAC-SHA256 HKDF, limited to one expand round (<= 32 bytes)."""
    if not 0 < length <= 32:
        raise CryptoError(f"HKDF output length must be 1..32, got {length}")
    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    ).derive(ikm)


@dataclass(frozen=True)
class DerivedKeys:
    """Per-message content key, nonce and the values sent alongside."""

    cek: bytes
    nonce: bytes
    content_salt: bytes
    ephemeral_public_key: bytes


def derive_keys(
    ephemeral: EphemeralKeyPair,
    subscriber: SubscriberKeys,
    content_salt: bytes | None = None,
) -> DerivedKeys:
    """Derive the CEK and nonce for one message.

    Deterministic for fixed (ephemeral, subscriber, content_salt). A
    random salt is drawn when none is given.

    Raises:
        CryptoError: subscriber public key is not a valid P-256 point,
            or content_salt has the wrong size.
    """
    if content_salt is None:
        content_salt = os.urandom(SALT_SIZE)
    elif len(content_salt) != SALT_SIZE:
        raise CryptoError(f"content salt must be {SALT_SIZE} bytes")

    shared_secret = ecdh(ephemeral.private_key, subscriber.public_key)
    key_info = WEBPUSH_INFO + subscriber.public_key + ephemeral.public_key
    ikm = hkdf_sha256(subscriber.auth_secret, shared_secret, key_info, 32)

    return DerivedKeys(
        cek=hkdf_sha256(content_salt, ikm, CEK_INFO, CEK_SIZE),
        nonce=hkdf_sha256(content_salt, ikm, NONCE_INFO, NONCE_SIZE),
        content_salt=content_salt,
        ephemeral_public_key=ephemeral.public_key,
    )


@dataclass(frozen=True)
class EncryptedRecord:
    """An aes128gcm body, ready to be sent as-is."""

    body: bytes

    @property
    def salt(self) -> bytes:
        return self.body[:SALT_SIZE]

    @property
    def record_size(self) -> int:
        return struct.unpack("!I", self.body[SALT_SIZE : SALT_SIZE + 4])[0]

    @property
    def key_id(self) -> bytes:
        idlen = self.body[SALT_SIZE + 4]
        start = SALT_SIZE + 5
        return self.body[start : start + idlen]

    @property
    def ciphertext(self) -> bytes:
        """Ciphertext with the GCM tag appended."""
        return self.body[SALT_SIZE + 5 + len(self.key_id) :]

    def __len__(self) -> int:
        return len(self.body)


def encrypt_record(
    payload: bytes,
    keys: DerivedKeys,
    *,
    padding: int = 0,
) -> EncryptedRecord:
    """Seal payload into a single aes128gcm record.

    ``padding`` zero bytes follow the delimiter. The default of 0 keeps
    the body minimal but exposes the payload length to observers.

    Raises:
        PayloadTooLargeError: payload plus padding exceeds
            MAX_PAYLOAD_SIZE.
    """
    if padding < 0:
        raise CryptoError(f"padding must be non-negative, got {padding}")
    if len(payload) + padding > MAX_PAYLOAD_SIZE:
        raise PayloadTooLargeError(len(payload) + padding, MAX_PAYLOAD_SIZE)
    if len(keys.ephemeral_public_key) != P256_POINT_SIZE:
        raise CryptoError("ephemeral public key must be a 65-byte point")

    plaintext = payload + LAST_RECORD_DELIMITER + b"\x00" * padding
    sealed = AESGCM(keys.cek).encrypt(keys.nonce, plaintext, None)

    record_size = len(sealed) + 1 + P256_POINT_SIZE
    header = (
        keys.content_salt
        + struct.pack("!IB", record_size, P256_POINT_SIZE)
        + keys.ephemeral_public_key
    )
    return EncryptedRecord(body=header + sealed)


def decrypt_record(
    body: bytes,
    private_key: ec.EllipticCurvePrivateKey,
    auth_secret: bytes,
) -> bytes:
    """Recover the payload from an aes128gcm body (receiver side).

    Mirrors what the browser does with its subscription key; handy for
    tests and for inspecting captured requests.
    """
    if len(body) < SALT_SIZE + 5:
        raise CryptoError("record is shorter than its header")
    record = EncryptedRecord(body=body)
    sender_public = record.key_id
    if len(sender_public) != P256_POINT_SIZE:
        raise CryptoError("record key id is not a P-256 point")

    shared_secret = ecdh(private_key, sender_public)
    key_info = WEBPUSH_INFO + public_key_bytes(private_key.public_key()) + sender_public
    ikm = hkdf_sha256(auth_secret, shared_secret, key_info, 32)
    cek = hkdf_sha256(record.salt, ikm, CEK_INFO, CEK_SIZE)
    nonce = hkdf_sha256(record.salt, ikm, NONCE_INFO, NONCE_SIZE)

    try:
        plaintext = AESGCM(cek).decrypt(nonce, record.ciphertext, None)
    except InvalidTag as e:
        raise CryptoError("record authentication failed") from e

    unpadded = plaintext.rstrip(b"\x00")
    if not unpadded.endswith(LAST_RECORD_DELIMITER):
        raise CryptoError("record is missing the last-record delimiter")
    return unpadded[:-1]
