# topicrelay_app/utils/message_parser.py
import re
from typing import Optional, Any

from ..models import AlbumItem, InboundMessage

# Forum topic names are capped at 128 characters by the Bot API.
MAX_TOPIC_TITLE_LENGTH = 128

# Gateway error texts meaning the target forum topic is gone.
THREAD_MISSING_REGEX = re.compile(
    r'message thread not found|thread not found|topic_deleted|topic_id_invalid|topic not found',
    re.IGNORECASE,
)

# Gateway error texts meaning forwarding is refused but copying may still work.
FORWARD_RESTRICTED_REGEX = re.compile(
    r"message can't be forwarded|can't be forwarded|protected content|forwards? restricted",
    re.IGNORECASE,
)


def is_command(text: Optional[str]) -> bool:
    """True for bot commands, i.e. text with a leading ``/``."""
    return bool(text) and text.startswith('/')


def build_topic_title(first_name: Any, last_name: Any = None, username: Any = None,
                      fallback: Any = None) -> str:
    """
    Builds the forum topic title for a user: ``"First Last @username"``.

    Falls back to ``fallback`` (usually the user id) when the profile has no
    usable name, and truncates to the Bot API limit.
    """
    name = f"{first_name or ''} {last_name or ''}".strip()
    title = name + (f" @{username}" if username else "")
    title = title.strip()
    if not title and fallback is not None:
        title = str(fallback)
    return title[:MAX_TOPIC_TITLE_LENGTH]


def extract_album_item(message: InboundMessage) -> Optional[AlbumItem]:
    """
    Normalizes the media payload of an album part.

    Returns None when the message carries nothing sendMediaGroup accepts,
    in which case the caller relays the part on its own.
    """
    if message.photo:
        # Sizes are ordered smallest to largest; relay the largest.
        return AlbumItem(type='photo', media=message.photo[-1].file_id, caption=message.caption)
    if message.video:
        return AlbumItem(type='video', media=message.video.file_id, caption=message.caption)
    if message.document:
        return AlbumItem(type='document', media=message.document.file_id, caption=message.caption)
    if message.audio:
        return AlbumItem(type='audio', media=message.audio.file_id, caption=message.caption)
    return None


def is_thread_missing_error(description: Optional[str]) -> bool:
    if not description:
        return False
    return bool(THREAD_MISSING_REGEX.search(description))


def is_forward_restricted_error(description: Optional[str]) -> bool:
    if not description:
        return False
    return bool(FORWARD_RESTRICTED_REGEX.search(description))
