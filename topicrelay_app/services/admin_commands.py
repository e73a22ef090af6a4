# topicrelay_app/services/admin_commands.py
import logging
from enum import Enum
from typing import Optional

from ..utils.logging_utils import relay_context

logger = logging.getLogger(__name__)


class AdminCommand(Enum):
    CLOSE = "/close"
    OPEN = "/open"
    BAN = "/ban"
    UNBAN = "/unban"
    INFO = "/info"

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["AdminCommand"]:
        """Exact match on the trimmed text; anything else is an ordinary reply."""
        if not text:
            return None
        try:
            return cls(text.strip())
        except ValueError:
            return None


def _set_closed(registry, telegram, group_id: int, user_id: int, thread_id: int, closed: bool) -> None:
    if registry.set_closed(user_id, closed) is None:
        return
    result = telegram.set_thread_closed(group_id, thread_id, closed)
    if not result.ok:
        logger.warning(f"Could not {'close' if closed else 'reopen'} topic {thread_id}: {result.description}",
                       extra=relay_context(user_id=user_id, thread_id=thread_id))


def _close(registry, telegram, group_id, user_id, thread_id):
    _set_closed(registry, telegram, group_id, user_id, thread_id, True)


def _open(registry, telegram, group_id, user_id, thread_id):
    _set_closed(registry, telegram, group_id, user_id, thread_id, False)


def _ban(registry, telegram, group_id, user_id, thread_id):
    registry.ban(user_id)


def _unban(registry, telegram, group_id, user_id, thread_id):
    registry.unban(user_id)


def _info(registry, telegram, group_id, user_id, thread_id):
    profile = telegram.get_user_profile(user_id)
    data = profile.result if profile.ok and isinstance(profile.result, dict) else {}
    full_name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()
    username = f"@{data['username']}" if data.get('username') else "not set"
    text = f"👤 User info\nUID: {user_id}\nName: {full_name}\nUsername: {username}"
    telegram.send_text(group_id, text, thread_id=thread_id)


_HANDLERS = {
    AdminCommand.CLOSE: _close,
    AdminCommand.OPEN: _open,
    AdminCommand.BAN: _ban,
    AdminCommand.UNBAN: _unban,
    AdminCommand.INFO: _info,
}


def apply_admin_command(command: AdminCommand, registry, telegram, group_id: int,
                        user_id: int, thread_id: int) -> None:
    """Applies an operator command to the registry for the user behind ``thread_id``."""
    logger.info(f"Admin command {command.value} for user {user_id}.",
                extra=relay_context(user_id=user_id, thread_id=thread_id))
    _HANDLERS[command](registry, telegram, group_id, user_id, thread_id)
