"""Tests for PushNotifier fan-out and endpoint cleanup."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from conftest import make_subscriber

from classpush.notifications.encryption import decrypt_record
from classpush.notifications.engine import WebPushEngine
from classpush.notifications.errors import PushDeliveryError
from classpush.notifications.push import PushNotifier
from classpush.notifications.store import (
    PushSubscriptionStore,
)
from classpush.notifications.transport import PushTransport

PAYLOAD = {"title": "Assignment due", "body": "Lab 3 closes tonight"}


@pytest.fixture
def store(tmp_path):
    return PushSubscriptionStore(tmp_path / "subs.json")


@pytest.fixture
def engine(vapid):
    return WebPushEngine(vapid, "mailto:test@test.example")


def _notifier(store, engine, handler) -> PushNotifier:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return PushNotifier(store=store, engine=engine, transport=PushTransport(client=client))


def _add(store, user_id, sub):
    s = sub.subscription
    store.subscribe(user_id, s.endpoint, s.p256dh, s.auth)


class TestNotifyUser:
    def test_delivers_to_every_device(self, store, engine):
        phone = make_subscriber("https://fcm.googleapis.com/fcm/send/phone")
        laptop = make_subscriber("https://updates.push.services.mozilla.com/wpush/v2/lap")
        _add(store, "u1", phone)
        _add(store, "u1", laptop)
        received: dict[str, bytes] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received[str(request.url)] = request.content
            return httpx.Response(201)

        sent = _notifier(store, engine, handler).notify_user("u1", PAYLOAD)
        assert sent == 2
        for sub in (phone, laptop):
            body = received[sub.subscription.endpoint]
            out = decrypt_record(body, sub.private_key, sub.auth_secret)
            assert json.loads(out) == PAYLOAD

    def test_no_subscribers(self, store, engine):
        handler = MagicMock(return_value=httpx.Response(201))
        assert _notifier(store, engine, handler).notify_user("u1", PAYLOAD) == 0
        handler.assert_not_called()

    def test_other_users_untouched(self, store, engine, subscriber):
        _add(store, "u2", subscriber)
        handler = MagicMock(return_value=httpx.Response(201))
        assert _notifier(store, engine, handler).notify_user("u1", PAYLOAD) == 0
        handler.assert_not_called()


class TestEndpointCleanup:
    @pytest.mark.parametrize("status", [404, 410])
    def test_gone_removes_endpoint(self, store, engine, subscriber, status):
        _add(store, "u1", subscriber)
        notifier = _notifier(store, engine, lambda r: httpx.Response(status))
        assert notifier.notify_user("u1", PAYLOAD) == 0
        assert store.get_subscriptions_for_user("u1") == []

    def test_server_error_keeps_endpoint(self, store, engine, subscriber):
        _add(store, "u1", subscriber)
        notifier = _notifier(store, engine, lambda r: httpx.Response(503))
        assert notifier.notify_user("u1", PAYLOAD) == 0
        assert len(store.get_subscriptions_for_user("u1")) == 1

    def test_partial_failure(self, store, engine):
        ok = make_subscriber("https://push.example.com/ok")
        gone = make_subscriber("https://push.example.com/gone")
        _add(store, "u1", ok)
        _add(store, "u1", gone)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(410 if request.url.path == "/gone" else 201)

        assert _notifier(store, engine, handler).notify_user("u1", PAYLOAD) == 1
        assert store.get_endpoints_for_user("u1") == ["https://push.example.com/ok"]


class TestInvalidSubscription:
    def test_malformed_keys_skipped(self, store, engine, subscriber):
        store.subscribe("u1", "https://push.example.com/bad", "k", "a")
        _add(store, "u1", subscriber)
        handler = MagicMock(return_value=httpx.Response(201))
        assert _notifier(store, engine, handler).notify_user("u1", PAYLOAD) == 1
        assert handler.call_count == 1


    def test_malformed_endpoint_port_skipped(self, store, engine, subscriber):
        s = subscriber.subscription
        store.subscribe("u1", "https://push.example.com:abc/x", s.p256dh, s.auth)
        _add(store, "u1", subscriber)
        handler = MagicMock(return_value=httpx.Response(201))
        assert _notifier(store, engine, handler).notify_user("u1", PAYLOAD) == 1
        assert handler.call_count == 1


class TestSend:
    def test_single_send_raises(self, store, engine, subscriber):
        notifier = _notifier(store, engine, lambda r: httpx.Response(413))
        with pytest.raises(PushDeliveryError) as exc:
            notifier.send(subscriber.subscription, PAYLOAD)
        assert exc.value.status_code == 413

    def test_single_send_outcome(self, store, engine, subscriber):
        notifier = _notifier(store, engine, lambda r: httpx.Response(201))
        outcome = notifier.send(subscriber.subscription, PAYLOAD, ttl=30)
        assert outcome.success
        assert outcome.endpoint == subscriber.subscription.endpoint
