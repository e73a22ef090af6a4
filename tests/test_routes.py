from unittest.mock import patch, MagicMock

import pytest

from topicrelay_app.errors import FatalDeliveryError
from topicrelay_app.models import ThreadRecord
from topicrelay_app.services.telegram_service import TelegramResult

from .conftest import GROUP_ID, USER_ID


def create_update(chat_id, chat_type="private", **fields):
    """Builds a minimal Telegram webhook update around one message."""
    message = {
        "message_id": 11,
        "date": 1700000000,
        "chat": {"id": chat_id, "type": chat_type},
        "from": {"id": USER_ID, "is_bot": False, "first_name": "Ada", "username": "ada"},
        "text": "hello",
    }
    message.update(fields)
    return {"update_id": 1, "message": message}


@pytest.fixture
def patched_relay(relay):
    with patch('topicrelay_app.api.routes.get_relay_service', return_value=relay):
        yield relay


def test_private_message_is_forwarded_into_new_topic(client, patched_relay, telegram, registry):
    response = client.post('/api/telegram-webhook', json=create_update(USER_ID))

    assert response.status_code == 200
    telegram.create_thread.assert_called_once()
    telegram.forward_message.assert_called_once_with(USER_ID, 11, GROUP_ID, 100)
    assert registry.get(USER_ID).thread_id == 100


def test_private_failure_is_reported_to_user(client, patched_relay, telegram, registry):
    registry.upsert(USER_ID, ThreadRecord(thread_id=7))
    telegram.forward_message.side_effect = None
    telegram.forward_message.return_value = TelegramResult(ok=False, description="Bad Request: chat not found")

    response = client.post('/api/telegram-webhook', json=create_update(USER_ID))

    assert response.status_code == 200
    telegram.send_text.assert_called_once_with(USER_ID, "system error\n\nBad Request: chat not found", thread_id=None)


def test_unexpected_error_is_reported_and_acknowledged(client, telegram):
    relay = MagicMock()
    relay.telegram = telegram
    relay.handle_private_message.side_effect = RuntimeError("boom")

    with patch('topicrelay_app.api.routes.get_relay_service', return_value=relay):
        response = client.post('/api/telegram-webhook', json=create_update(USER_ID))

    assert response.status_code == 200
    telegram.send_text.assert_called_once_with(USER_ID, "system error\n\nboom", thread_id=None)


def test_operator_reply_is_copied_to_user(client, patched_relay, telegram, registry):
    registry.upsert(USER_ID, ThreadRecord(thread_id=7))
    update = create_update(GROUP_ID, "supergroup", message_thread_id=7, is_topic_message=True, text="answer")

    response = client.post('/api/telegram-webhook', json=update)

    assert response.status_code == 200
    telegram.copy_message.assert_called_once_with(GROUP_ID, 11, USER_ID)


def test_operator_failure_is_posted_into_thread(client, patched_relay, telegram, registry):
    registry.upsert(USER_ID, ThreadRecord(thread_id=7))
    telegram.copy_message.return_value = TelegramResult(ok=False, description="Forbidden: bot was blocked by the user")
    update = create_update(GROUP_ID, "supergroup", message_thread_id=7, text="answer")

    client.post('/api/telegram-webhook', json=update)

    telegram.send_text.assert_called_once_with(
        GROUP_ID, "system error\n\nForbidden: bot was blocked by the user", thread_id=7
    )


def test_topic_closed_service_message_updates_record(client, patched_relay, registry, telegram):
    registry.upsert(USER_ID, ThreadRecord(thread_id=7))
    update = create_update(GROUP_ID, "supergroup", message_thread_id=7, text=None, forum_topic_closed={})

    client.post('/api/telegram-webhook', json=update)

    assert registry.get(USER_ID).closed is True
    telegram.copy_message.assert_not_called()


def test_group_message_outside_topics_is_ignored(client, patched_relay, telegram):
    client.post('/api/telegram-webhook', json=create_update(GROUP_ID, "supergroup"))

    telegram.copy_message.assert_not_called()
    telegram.forward_message.assert_not_called()


def test_unrelated_group_is_ignored(client, patched_relay, telegram):
    update = create_update(-100999, "supergroup", message_thread_id=7)

    response = client.post('/api/telegram-webhook', json=update)

    assert response.get_json()["message"] == "Ignored: unrelated chat"
    telegram.copy_message.assert_not_called()


@pytest.mark.parametrize("body", [
    {"update_id": 1, "edited_message": {"message_id": 1}},
    {"update_id": 2, "message": {"message_id": "not-an-int"}},
])
def test_irrelevant_or_malformed_updates_are_acknowledged(client, patched_relay, telegram, body):
    response = client.post('/api/telegram-webhook', json=body)

    assert response.status_code == 200
    telegram.send_text.assert_not_called()


def test_non_json_body_is_acknowledged(client):
    response = client.post('/api/telegram-webhook', data="nope", content_type="text/plain")
    assert response.status_code == 200


def test_fatal_error_reason_reaches_sender(client, telegram):
    relay = MagicMock()
    relay.telegram = telegram
    relay.handle_private_message.side_effect = FatalDeliveryError("Bad Request: not enough rights")

    with patch('topicrelay_app.api.routes.get_relay_service', return_value=relay):
        client.post('/api/telegram-webhook', json=create_update(USER_ID))

    assert "not enough rights" in telegram.send_text.call_args[0][1]


def test_health_reports_redis(client, store):
    with patch('topicrelay_app.api.routes.get_store', return_value=store):
        response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json()["redis_connected"] is True
