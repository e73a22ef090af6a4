# topicrelay_app/services/relay_service.py
# -*- coding: utf-8 -*-
import logging
from typing import Optional

from ..errors import (
    ConfigurationError,
    FatalDeliveryError,
    ReconciliationError,
    ThreadCreationError,
)
from ..models import AlbumDirection, InboundMessage, ThreadRecord
from ..utils.logging_utils import relay_context
from ..utils.message_parser import (
    build_topic_title,
    is_command,
    is_forward_restricted_error,
    is_thread_missing_error,
)
from .admin_commands import AdminCommand, apply_admin_command

logger = logging.getLogger(__name__)

# Outcomes of a single forward attempt into a topic.
DELIVERED = "delivered"
MISDELIVERED = "misdelivered"
THREAD_MISSING = "thread_missing"


class RelayService:
    """
    Moves messages between private chats and their forum topics.

    User -> group messages are forwarded so operators see who wrote them.
    Operator replies are copied so the user never sees operator identities.
    When a user's topic has been deleted behind our back the record is
    rebuilt on a fresh topic and the forward is retried once.
    """

    def __init__(self, registry, telegram, albums, group_id, closed_notice: str,
                 username_required_notice: Optional[str] = None, require_username: bool = False):
        self.registry = registry
        self.telegram = telegram
        self.albums = albums
        self.group_id = str(group_id or "")
        self.closed_notice = closed_notice
        self.username_required_notice = username_required_notice
        self.require_username = require_username

    @property
    def group_chat_id(self) -> int:
        if not self.group_id.startswith("-100"):
            raise ConfigurationError("SUPERGROUP_ID must start with -100")
        return int(self.group_id)

    # ------------------------------------------------------------------
    # User -> group
    # ------------------------------------------------------------------

    def handle_private_message(self, message: InboundMessage) -> None:
        user_id = message.chat.id
        context = relay_context(user_id=user_id, message_id=message.message_id)

        if is_command(message.text):
            logger.debug(f"Ignoring command from user {user_id}.", extra=context)
            return
        if self.registry.is_banned(user_id):
            logger.info(f"Dropping message from banned user {user_id}.", extra=context)
            return
        if self.require_username and not (message.from_user and message.from_user.username):
            self.telegram.send_text(user_id, self.username_required_notice, parse_mode="Markdown")
            return

        record = self.registry.get(user_id)
        if record and record.closed:
            logger.info(f"Conversation with user {user_id} is closed; sending notice.", extra=context)
            self.telegram.send_text(user_id, self.closed_notice)
            return
        if record is None:
            record = self._create_record(user_id, message)

        if message.media_group_id:
            self.albums.add_part(message, AlbumDirection.TO_GROUP, self.group_chat_id, record.thread_id)
            return

        outcome, result = self._forward_to_thread(message, record.thread_id)
        if outcome == DELIVERED:
            return

        logger.warning(f"Topic {record.thread_id} of user {user_id} is unusable ({outcome}); reconciling.",
                       extra=relay_context(user_id=user_id, thread_id=record.thread_id))
        if outcome == MISDELIVERED:
            self._discard_errant_message(result)

        try:
            record = self._reconcile(user_id, record, message)
            outcome, result = self._forward_to_thread(message, record.thread_id)
        except (FatalDeliveryError, ThreadCreationError) as e:
            raise ReconciliationError(e.reason) from e
        if outcome == MISDELIVERED:
            self._discard_errant_message(result)
        if outcome != DELIVERED:
            raise ReconciliationError(
                f"delivery to new topic {record.thread_id} failed: "
                f"{result.description or outcome}"
            )

    def _forward_to_thread(self, message: InboundMessage, thread_id: int):
        """
        One forward attempt. Returns ``(outcome, result)``; raises
        FatalDeliveryError for failures a new topic would not fix.
        """
        result = self.telegram.forward_message(message.chat.id, message.message_id, self.group_chat_id, thread_id)
        if result.ok:
            if result.delivered_thread_id is not None and int(result.delivered_thread_id) == int(thread_id):
                return DELIVERED, result
            return MISDELIVERED, result

        if is_thread_missing_error(result.description):
            return THREAD_MISSING, result

        if is_forward_restricted_error(result.description):
            # copyMessage echoes only a message id, so misdelivery can't be checked here.
            copied = self.telegram.copy_message(message.chat.id, message.message_id, self.group_chat_id, thread_id)
            if copied.ok:
                return DELIVERED, copied
            if is_thread_missing_error(copied.description):
                return THREAD_MISSING, copied
            raise FatalDeliveryError(copied.description)

        raise FatalDeliveryError(result.description)

    def _discard_errant_message(self, result) -> None:
        """Best effort: remove a forward that landed in the General topic."""
        if result is None or result.message_id is None:
            return
        cleanup = self.telegram.delete_message(self.group_chat_id, result.message_id)
        if not cleanup.ok:
            logger.info(f"Could not delete misdelivered message {result.message_id}: {cleanup.description}")

    def _reconcile(self, user_id: int, stale: ThreadRecord, message: InboundMessage) -> ThreadRecord:
        """Drops the stale record and rebuilds it on a freshly created topic."""
        self.registry.delete(user_id)
        record = self._create_record(user_id, message, refresh_profile=True)
        logger.info(f"Reconciled user {user_id}: topic {stale.thread_id} -> {record.thread_id}.",
                    extra=relay_context(user_id=user_id, thread_id=record.thread_id))
        return record

    def _create_record(self, user_id: int, message: InboundMessage, refresh_profile: bool = False) -> ThreadRecord:
        title = self._derive_title(user_id, message, refresh_profile)
        result = self.telegram.create_thread(self.group_chat_id, title)
        if not result.ok or not isinstance(result.result, dict) or result.result.get('message_thread_id') is None:
            raise ThreadCreationError(result.description or "createForumTopic returned no thread id")

        record = ThreadRecord(thread_id=result.result['message_thread_id'], title=title, closed=False)
        self.registry.upsert(user_id, record)
        logger.info(f"Created topic {record.thread_id} '{title}' for user {user_id}.",
                    extra=relay_context(user_id=user_id, thread_id=record.thread_id))
        return record

    def _derive_title(self, user_id: int, message: InboundMessage, refresh_profile: bool) -> str:
        profile = {}
        if refresh_profile:
            fetched = self.telegram.get_user_profile(user_id)
            if fetched.ok and isinstance(fetched.result, dict):
                profile = fetched.result
            else:
                logger.info(f"getChat for user {user_id} failed ({fetched.description}); using message sender.")
        if not profile and message.from_user:
            profile = message.from_user.model_dump()
        return build_topic_title(profile.get('first_name'), profile.get('last_name'),
                                 profile.get('username'), fallback=user_id)

    # ------------------------------------------------------------------
    # Group -> user
    # ------------------------------------------------------------------

    def handle_operator_message(self, message: InboundMessage) -> None:
        thread_id = message.message_thread_id
        user_id = self.registry.find_user_by_thread(thread_id)
        if user_id is None:
            logger.debug(f"Message in untracked topic {thread_id} ignored.", extra=relay_context(thread_id=thread_id))
            return

        command = AdminCommand.parse(message.text)
        if command is not None:
            apply_admin_command(command, self.registry, self.telegram, self.group_chat_id, user_id, thread_id)
            return

        if message.media_group_id:
            self.albums.add_part(message, AlbumDirection.TO_USER, user_id)
            return

        result = self.telegram.copy_message(message.chat.id, message.message_id, user_id)
        if not result.ok:
            raise FatalDeliveryError(result.description)
        logger.debug(f"Copied operator reply {message.message_id} to user {user_id}.",
                     extra=relay_context(user_id=user_id, thread_id=thread_id))

    def handle_topic_status(self, message: InboundMessage) -> None:
        """Mirrors a topic closed/reopened in the Telegram UI onto the record."""
        closed = message.topic_closed
        user_id = self.registry.set_closed_by_thread(message.message_thread_id, closed)
        if user_id is not None:
            logger.info(f"Topic {message.message_thread_id} {'closed' if closed else 'reopened'} externally.",
                        extra=relay_context(user_id=user_id, thread_id=message.message_thread_id))
