# topicrelay_app/api/routes.py
# -*- coding: utf-8 -*-

import logging
import datetime
from datetime import timezone

from flask import request, jsonify, current_app
from pydantic import ValidationError

from ..errors import RelayError
from ..extensions import get_relay_service, get_store
from ..models import InboundMessage
from ..utils.logging_utils import relay_context

from . import api_bp

logger = logging.getLogger(__name__)


def _ok(message: str):
    # Telegram retries any non-2xx answer, so every outcome is acknowledged.
    return jsonify({"status": "ok", "message": message}), 200


def _error_notice(reason: str) -> str:
    return f"{current_app.config.get('SYSTEM_ERROR_NOTICE', '⚠️ System error')}\n\n{reason}"


def _report_failure(relay, chat_id: int, thread_id, error: Exception) -> None:
    """Tells the original sender a message could not be relayed."""
    reason = error.reason if isinstance(error, RelayError) else str(error)
    result = relay.telegram.send_text(chat_id, _error_notice(reason), thread_id=thread_id)
    if not result.ok:
        logger.error(f"Could not deliver system-error notice to chat {chat_id}: {result.description}")


@api_bp.route('/telegram-webhook', methods=['POST'])
def handle_telegram_webhook():
    """
    Receives Telegram updates, classifies the message as coming from a
    private chat or from a topic of the operator supergroup, and hands it to
    the relay service.
    """
    update = request.get_json(silent=True)
    if not isinstance(update, dict):
        return _ok("Ignored: no JSON body")

    raw_message = update.get('message')
    if not isinstance(raw_message, dict):
        return _ok("Ignored: update has no message")

    try:
        message = InboundMessage.model_validate(raw_message)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed message in update {update.get('update_id')}: {e.errors()}")
        return _ok("Ignored: malformed message")

    relay = get_relay_service()

    # Rule 1: private chat with a user
    if message.is_private:
        try:
            relay.handle_private_message(message)
        except RelayError as e:
            logger.error(f"Relay of private message {message.message_id} failed: {e.reason}",
                         extra=relay_context(user_id=message.chat.id, message_id=message.message_id))
            _report_failure(relay, message.chat.id, None, e)
        except Exception as e:
            logger.exception(f"Unexpected error relaying private message {message.message_id}: {e}",
                             extra=relay_context(user_id=message.chat.id, message_id=message.message_id))
            _report_failure(relay, message.chat.id, None, e)
        return _ok("Private message processed")

    # Rule 2: the operator supergroup
    if relay.group_id and str(message.chat.id) == relay.group_id:
        thread_id = message.message_thread_id
        if not thread_id:
            return _ok("Ignored: message outside any topic")
        try:
            if message.topic_closed or message.topic_reopened:
                relay.handle_topic_status(message)
                return _ok("Topic status updated")
            relay.handle_operator_message(message)
        except RelayError as e:
            logger.error(f"Relay of operator message {message.message_id} failed: {e.reason}",
                         extra=relay_context(thread_id=thread_id, message_id=message.message_id))
            _report_failure(relay, message.chat.id, thread_id, e)
        except Exception as e:
            logger.exception(f"Unexpected error relaying operator message {message.message_id}: {e}",
                             extra=relay_context(thread_id=thread_id, message_id=message.message_id))
            _report_failure(relay, message.chat.id, thread_id, e)
        return _ok("Operator message processed")

    # Rule 3: anything else
    logger.debug(f"Ignoring message from unrelated chat {message.chat.id}.")
    return _ok("Ignored: unrelated chat")


@api_bp.route('/health', methods=['GET'])
def health_check():
    """Reports whether Redis answers."""
    logger.debug("Health check endpoint hit.")
    redis_ok = get_store().ping()
    return jsonify({
        "status": "ok",
        "redis_connected": redis_ok,
        "timestamp": datetime.datetime.now(timezone.utc).isoformat(),
    }), 200
