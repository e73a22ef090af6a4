# topicrelay_app/services/thread_mapping_service.py
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from ..models import ThreadRecord
from ..utils.logging_utils import relay_context

logger = logging.getLogger(__name__)

USER_KEY_PREFIX = "user:"
BANNED_KEY_PREFIX = "banned:"
THREAD_INDEX_PREFIX = "thread:"


def user_key(user_id: int) -> str:
    return f"{USER_KEY_PREFIX}{user_id}"


def banned_key(user_id: int) -> str:
    return f"{BANNED_KEY_PREFIX}{user_id}"


def thread_index_key(thread_id: int) -> str:
    return f"{THREAD_INDEX_PREFIX}{thread_id}"


def _user_id_from_key(key: str) -> Optional[int]:
    try:
        return int(key[len(USER_KEY_PREFIX):])
    except (TypeError, ValueError):
        return None


class ThreadRegistry:
    """
    Durable mapping from a private-chat user to their forum topic.

    The forward mapping (``user:{id}``) is the source of truth. ``thread:{id}``
    is a reverse index used as a fast path for operator replies; every hit is
    checked against the forward record and a miss falls back to scanning all
    ``user:`` keys, so a stale or missing index entry never changes the answer.
    """

    def __init__(self, store):
        self.store = store

    # --- forward mapping ---

    def get(self, user_id: int) -> Optional[ThreadRecord]:
        """Retrieves the ThreadRecord for a user, or None if the user has none."""
        data = self.store.get_json(user_key(user_id))
        if not data:
            return None
        try:
            return ThreadRecord.model_validate(data)
        except ValidationError as e:
            logger.error(f"Corrupt thread record for user {user_id}: {e.errors()}",
                         extra=relay_context(user_id=user_id))
            return None

    def upsert(self, user_id: int, record: ThreadRecord) -> None:
        """
        Full overwrite of the user's record, last writer wins.
        Callers read-modify-write; concurrent admin actions on the same
        user may lose an update.
        """
        self.store.put_json(user_key(user_id), record.model_dump())
        self.store.put(thread_index_key(record.thread_id), str(user_id))
        logger.debug(f"Stored thread record for user {user_id}: thread {record.thread_id}, closed={record.closed}.",
                     extra=relay_context(user_id=user_id, thread_id=record.thread_id))

    def delete(self, user_id: int) -> None:
        """Removes the user's record. Only reconciliation calls this."""
        record = self.get(user_id)
        self.store.delete(user_key(user_id))
        if record:
            self.store.delete(thread_index_key(record.thread_id))
        logger.info(f"Deleted thread record for user {user_id}.",
                    extra=relay_context(user_id=user_id, thread_id=record.thread_id if record else None))

    # --- reverse lookup ---

    def find_user_by_thread(self, thread_id: int) -> Optional[int]:
        """
        Resolves a forum topic id to the user it is assigned to.

        Returns None for thread ids that were never assigned or whose record
        has since been deleted or moved to a new thread.
        """
        if thread_id is None:
            return None

        indexed = self.store.get(thread_index_key(thread_id))
        if indexed is not None:
            try:
                candidate = int(indexed)
            except ValueError:
                candidate = None
            if candidate is not None:
                record = self.get(candidate)
                if record and int(record.thread_id) == int(thread_id):
                    return candidate
            # Stale entry: the user was reconciled onto another thread.
            self.store.delete(thread_index_key(thread_id))

        for key in self.store.list_keys(USER_KEY_PREFIX):
            user_id = _user_id_from_key(key)
            if user_id is None:
                continue
            record = self.get(user_id)
            if record and int(record.thread_id) == int(thread_id):
                self.store.put(thread_index_key(thread_id), str(user_id))
                return user_id

        logger.debug(f"No user mapped to thread {thread_id}.", extra=relay_context(thread_id=thread_id))
        return None

    def list_records(self) -> List[Tuple[int, ThreadRecord]]:
        """Every (user_id, record) pair, in key scan order."""
        records = []
        for key in self.store.list_keys(USER_KEY_PREFIX):
            user_id = _user_id_from_key(key)
            if user_id is None:
                continue
            record = self.get(user_id)
            if record:
                records.append((user_id, record))
        return records

    # --- ban sentinel ---

    def is_banned(self, user_id: int) -> bool:
        return self.store.get(banned_key(user_id)) is not None

    def ban(self, user_id: int) -> None:
        self.store.put(banned_key(user_id), "1")
        logger.info(f"User {user_id} banned.", extra=relay_context(user_id=user_id))

    def unban(self, user_id: int) -> None:
        self.store.delete(banned_key(user_id))
        logger.info(f"User {user_id} unbanned.", extra=relay_context(user_id=user_id))

    # --- closed flag ---

    def set_closed(self, user_id: int, closed: bool) -> Optional[ThreadRecord]:
        """Toggles ``closed`` on an existing record. Returns None if the user has no record."""
        record = self.get(user_id)
        if not record:
            logger.info(f"No thread record for user {user_id}; closed={closed} ignored.",
                        extra=relay_context(user_id=user_id))
            return None
        record.closed = closed
        self.upsert(user_id, record)
        return record

    def set_closed_by_thread(self, thread_id: int, closed: bool) -> Optional[int]:
        """Applies a topic closed/reopened event. Unknown threads are ignored."""
        user_id = self.find_user_by_thread(thread_id)
        if user_id is None:
            return None
        if self.set_closed(user_id, closed) is None:
            return None
        return user_id
