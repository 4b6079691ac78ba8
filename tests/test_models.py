"""Tests for subscription decoding and payload serialization."""

import json

import pytest

from classpush.notifications.errors import ValidationError
from classpush.notifications.models import (
    NotificationPayload,
    PushSubscription,
    b64url_decode,
    b64url_encode,
    decode_subscription,
    payload_to_bytes,
)


def _with(sub: PushSubscription, **changes) -> PushSubscription:
    data = {"endpoint": sub.endpoint, "p256dh": sub.p256dh, "auth": sub.auth}
    data.update(changes)
    return PushSubscription(**data)


class TestBase64Url:
    def test_unpadded(self):
        assert b64url_encode(b"\xfb\xff") == "-_8"

    def test_decode_padded_and_unpadded(self):
        assert b64url_decode("-_8") == b"\xfb\xff"
        assert b64url_decode("-_8=") == b"\xfb\xff"

    @pytest.mark.parametrize("value", ["+/8", "a b", "abcde", "AAAA\n", "AAAA\nAAAA"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            b64url_decode(value)


class TestDecodeSubscription:
    def test_valid(self, subscriber):
        keys = decode_subscription(subscriber.subscription)
        assert len(keys.public_key) == 65
        assert keys.auth_secret == subscriber.auth_secret

    def test_from_browser_json(self, subscriber):
        sub = subscriber.subscription
        parsed = PushSubscription.from_json(
            {"endpoint": sub.endpoint, "keys": {"p256dh": sub.p256dh, "auth": sub.auth}}
        )
        assert parsed == sub

    @pytest.mark.parametrize("size", [64, 66])
    def test_p256dh_wrong_size(self, subscriber, size):
        raw = b"\x04" + b"\x01" * (size - 1)
        with pytest.raises(ValidationError, match="p256dh"):
            decode_subscription(_with(subscriber.subscription, p256dh=b64url_encode(raw)))

    def test_p256dh_compressed_marker(self, subscriber):
        raw = b"\x02" + b"\x01" * 64
        with pytest.raises(ValidationError, match="uncompressed"):
            decode_subscription(_with(subscriber.subscription, p256dh=b64url_encode(raw)))

    @pytest.mark.parametrize("size", [15, 17])
    def test_auth_wrong_size(self, subscriber, size):
        with pytest.raises(ValidationError, match="auth"):
            decode_subscription(
                _with(subscriber.subscription, auth=b64url_encode(b"\x00" * size))
            )

    def test_auth_not_base64(self, subscriber):
        with pytest.raises(ValidationError, match="base64url"):
            decode_subscription(_with(subscriber.subscription, auth="!!!"))

    def test_missing_key(self, subscriber):
        with pytest.raises(ValidationError, match="missing"):
            decode_subscription(_with(subscriber.subscription, p256dh=""))

    @pytest.mark.parametrize(
        "endpoint",
        ["", "http://push.example.com/x", "not a url", "https:///nohost"],
    )
    def test_bad_endpoint(self, subscriber, endpoint):
        with pytest.raises(ValidationError, match="endpoint"):
            decode_subscription(_with(subscriber.subscription, endpoint=endpoint))

    @pytest.mark.parametrize(
        "endpoint",
        [
            "https://push.example.com:abc/x",
            "https://push.example.com:99999/x",
            "https://[push.example.com/x",
        ],
    )
    def test_malformed_endpoint_authority(self, subscriber, endpoint):
        with pytest.raises(ValidationError, match="endpoint"):
            decode_subscription(_with(subscriber.subscription, endpoint=endpoint))

    def test_key_with_trailing_newline(self, subscriber):
        with pytest.raises(ValidationError, match="base64url"):
            decode_subscription(
                _with(subscriber.subscription, auth=subscriber.subscription.auth + "\n")
            )


class TestPayload:
    def test_model_omits_unset_fields(self):
        data = json.loads(NotificationPayload(title="Hi", body="There").to_bytes())
        assert data == {"title": "Hi", "body": "There"}

    def test_model_keeps_optional_fields(self):
        payload = NotificationPayload(
            title="Assignment due",
            body="Essay 2 is due tomorrow",
            url="/courses/c1/assignments/a2",
            tag="assignment-a2",
        )
        data = json.loads(payload.to_bytes())
        assert data["url"] == "/courses/c1/assignments/a2"
        assert data["tag"] == "assignment-a2"
        assert "icon" not in data

    def test_mapping_is_compact_json(self):
        assert payload_to_bytes({"title": "a", "body": "b"}) == b'{"title":"a","body":"b"}'

    def test_str_and_bytes(self):
        assert payload_to_bytes("héllo") == "héllo".encode()
        assert payload_to_bytes(b"\x00\x01") == b"\x00\x01"
