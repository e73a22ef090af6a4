# topicrelay_app/services/album_service.py
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from ..models import AlbumBuffer, AlbumDirection, InboundMessage
from ..utils.logging_utils import relay_context
from ..utils.message_parser import extract_album_item, is_thread_missing_error

logger = logging.getLogger(__name__)

ALBUM_KEY_PREFIX = "mg:"


def album_key(direction: AlbumDirection, media_group_id: str) -> str:
    return f"{ALBUM_KEY_PREFIX}{direction.value}:{media_group_id}"


def _schedule_with_celery(key: str, stamp: int, delay: float) -> None:
    # Imported here: celery_tasks builds its services through this module.
    from ..celery_tasks import flush_album_task
    flush_album_task.apply_async(args=[key, stamp], countdown=delay)


class AlbumService:
    """
    Collects the parts of a media group and re-emits them as one sendMediaGroup.

    Debounce by stamp: every part rewrites ``last_stamp`` and schedules its own
    deferred flush carrying that stamp. When a flush wakes up it only emits if
    the stored stamp is still its own, which is true only for the task of the
    last part to arrive. Scheduled flushes are never cancelled.

    A failed emission is reported to the chat the album came from. For
    user albums whose topic is gone the stale record is dropped, so the next
    message from that user opens a fresh topic.
    """

    def __init__(self, store, telegram, quiet_seconds: float = 2.0, buffer_ttl: int = 60,
                 scheduler: Optional[Callable[[str, int, float], None]] = None,
                 clock: Callable[[], int] = time.time_ns, registry=None,
                 error_notice: str = "⚠️ System error"):
        self.store = store
        self.telegram = telegram
        self.quiet_seconds = quiet_seconds
        self.buffer_ttl = buffer_ttl
        self.scheduler = scheduler or _schedule_with_celery
        self.clock = clock
        self.registry = registry
        self.error_notice = error_notice

    def add_part(self, message: InboundMessage, direction: AlbumDirection,
                 target_chat: int, target_thread: Optional[int] = None) -> Optional[int]:
        """
        Buffers one album part and schedules a flush check.

        Returns the stamp written, or None if the part was relayed on its own
        because it carries no media sendMediaGroup understands.
        """
        context = relay_context(chat_id=target_chat, thread_id=target_thread,
                                media_group_id=message.media_group_id)
        item = extract_album_item(message)
        if item is None:
            logger.info(f"Album part {message.message_id} has no groupable media; relaying it alone.", extra=context)
            result = self.telegram.copy_message(message.chat.id, message.message_id, target_chat, target_thread)
            if not result.ok:
                logger.error(f"Standalone relay of album part {message.message_id} failed: {result.description}",
                             extra=context)
            return None

        key = album_key(direction, message.media_group_id)
        buffer = self._load(key)
        if buffer is None:
            buffer = AlbumBuffer(direction=direction, target_chat=target_chat, target_thread=target_thread,
                                 source_chat=message.chat.id, source_thread=message.message_thread_id)

        buffer.items.append(item)
        buffer.last_stamp = self.clock()
        self.store.put(key, buffer.model_dump_json(), ttl=self.buffer_ttl)
        logger.debug(f"Buffered album part #{len(buffer.items)} under {key} (stamp {buffer.last_stamp}).", extra=context)

        self.scheduler(key, buffer.last_stamp, self.quiet_seconds)
        return buffer.last_stamp

    def flush(self, key: str, stamp: int) -> bool:
        """
        Emits the buffered album if ``stamp`` is still the buffer's latest.

        Returns True only when this call performed the emission. A missing
        buffer (already flushed or expired) or a newer stamp makes it a no-op.
        """
        buffer = self._load(key)
        if buffer is None:
            logger.debug(f"Album buffer {key} gone; flush with stamp {stamp} skipped.")
            return False
        if buffer.last_stamp != stamp:
            logger.debug(f"Album buffer {key} superseded ({buffer.last_stamp} != {stamp}); flush skipped.")
            return False

        context = relay_context(chat_id=buffer.target_chat, thread_id=buffer.target_thread)
        result = self.telegram.send_media_batch(buffer.target_chat, buffer.media_payload(), buffer.target_thread)
        if result.ok:
            logger.info(f"Flushed album {key} with {len(buffer.items)} items.", extra=context)
        else:
            logger.error(f"sendMediaGroup for album {key} failed: {result.description}", extra=context)
            self._report_failure(buffer, result.description)

        # Flushed at most once, even when delivery failed.
        self.store.delete(key)
        return True

    def _report_failure(self, buffer: AlbumBuffer, reason: Optional[str]) -> None:
        """Notifies the album's sender; drops the user's record if their topic is gone."""
        if (buffer.direction == AlbumDirection.TO_GROUP and self.registry is not None
                and buffer.source_chat is not None and is_thread_missing_error(reason)):
            record = self.registry.get(buffer.source_chat)
            if record and record.thread_id == buffer.target_thread:
                self.registry.delete(buffer.source_chat)

        if buffer.source_chat is None:
            return
        text = f"{self.error_notice}\n\n{reason or 'sendMediaGroup failed'}"
        notice = self.telegram.send_text(buffer.source_chat, text, thread_id=buffer.source_thread)
        if not notice.ok:
            logger.error(f"Could not deliver album failure notice to chat {buffer.source_chat}: {notice.description}")

    def _load(self, key: str) -> Optional[AlbumBuffer]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return AlbumBuffer.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable album buffer {key}: {e.errors()}")
            self.store.delete(key)
            return None
