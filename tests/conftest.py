# /tests/conftest.py
import sys
import os
import itertools
import json
import pytest
from unittest.mock import MagicMock
from flask import Flask

# --- Path Fix (lets the tests run without installing the package) ---
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from topicrelay_app import create_app
from topicrelay_app.models import InboundMessage
from topicrelay_app.services.album_service import AlbumService
from topicrelay_app.services.relay_service import RelayService
from topicrelay_app.services.telegram_service import TelegramService, TelegramResult
from topicrelay_app.services.thread_mapping_service import ThreadRegistry

GROUP_ID = -1001234567890
USER_ID = 4242

TEST_CONFIG = {
    "TESTING": True,
    "DEBUG": False,
    "BOT_TOKEN": "123:test-token",
    "SUPERGROUP_ID": str(GROUP_ID),
    "REDIS_URL": "redis://localhost:6379/15",
    "CLOSED_NOTICE": "conversation closed",
    "SYSTEM_ERROR_NOTICE": "system error",
}


class InMemoryStore:
    """Dict-backed stand-in for RedisKeyValueStore. Remembers the TTL of every put."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def get_json(self, key):
        raw = self.data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key, value, ttl=None):
        self.data[key] = value
        self.ttls[key] = ttl

    def put_json(self, key, value, ttl=None):
        self.put(key, json.dumps(value), ttl=ttl)

    def delete(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    def list_keys(self, prefix):
        return [key for key in self.data if key.startswith(prefix)]

    def ping(self):
        return True


def _ok(result=None):
    return TelegramResult(ok=True, result=result)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def registry(store):
    return ThreadRegistry(store)


@pytest.fixture
def telegram():
    """Gateway double: every call succeeds and forwards land in the requested topic."""
    gateway = MagicMock(spec=TelegramService)
    thread_ids = itertools.count(100)
    message_ids = itertools.count(500)

    def forward(from_chat_id, message_id, chat_id, thread_id=None):
        return _ok({"message_id": next(message_ids), "message_thread_id": thread_id, "is_topic_message": True})

    def create_thread(chat_id, title):
        return _ok({"message_thread_id": next(thread_ids), "name": title})

    gateway.forward_message.side_effect = forward
    gateway.create_thread.side_effect = create_thread
    gateway.copy_message.return_value = _ok({"message_id": 900})
    gateway.send_text.return_value = _ok({"message_id": 901})
    gateway.delete_message.return_value = _ok(True)
    gateway.set_thread_closed.return_value = _ok(True)
    gateway.send_media_batch.return_value = _ok([{"message_id": 902}])
    gateway.get_user_profile.return_value = _ok(
        {"id": USER_ID, "first_name": "Ada", "last_name": "Lovelace", "username": "ada"}
    )
    return gateway


@pytest.fixture
def scheduled():
    """Flush checks requested by the album service, as (key, stamp, delay)."""
    return []


@pytest.fixture
def albums(store, telegram, scheduled, registry):
    stamps = itertools.count(1_000)
    return AlbumService(
        store,
        telegram,
        quiet_seconds=2,
        buffer_ttl=60,
        scheduler=lambda key, stamp, delay: scheduled.append((key, stamp, delay)),
        clock=lambda: next(stamps),
        registry=registry,
        error_notice="system error",
    )


@pytest.fixture
def relay(registry, telegram, albums):
    return RelayService(
        registry=registry,
        telegram=telegram,
        albums=albums,
        group_id=str(GROUP_ID),
        closed_notice="conversation closed",
        username_required_notice="username required",
    )


@pytest.fixture
def private_message():
    """Factory for a message a user sends to the bot privately."""
    message_ids = itertools.count(1)

    def build(user_id=USER_ID, **fields):
        raw = {
            "message_id": next(message_ids),
            "chat": {"id": user_id, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": "Ada",
                     "last_name": "Lovelace", "username": "ada"},
            "text": "hello",
        }
        raw.update(fields)
        return InboundMessage.model_validate(raw)

    return build


@pytest.fixture
def group_message():
    """Factory for a message an operator posts inside a topic of the supergroup."""
    message_ids = itertools.count(1_000)

    def build(thread_id, **fields):
        raw = {
            "message_id": next(message_ids),
            "chat": {"id": GROUP_ID, "type": "supergroup"},
            "from": {"id": 77, "is_bot": False, "first_name": "Operator"},
            "message_thread_id": thread_id,
            "is_topic_message": True,
            "text": "hi there",
        }
        raw.update(fields)
        return InboundMessage.model_validate(raw)

    return build


@pytest.fixture(scope='session')
def app() -> Flask:
    """ Creates the test application instance using the factory. """
    test_app = create_app()
    test_app.config.from_mapping(TEST_CONFIG)
    yield test_app


@pytest.fixture(scope='function')
def client(app: Flask):
    """ Provides a Flask test client. """
    return app.test_client()
