# topicrelay_app/models/thread_record.py
# -*- coding: utf-8 -*-
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ThreadRecord(BaseModel):
    """
    Mapping of one private-chat user to their forum topic in the supergroup.
    Stored as JSON under ``user:{user_id}``; the user id lives in the key only.
    """
    model_config = ConfigDict(extra='ignore', validate_assignment=True)

    thread_id: int
    title: str = ""
    closed: bool = False


class AlbumDirection(str, Enum):
    TO_GROUP = "p2t"  # private chat -> topic
    TO_USER = "t2p"   # topic -> private chat


class AlbumItem(BaseModel):
    """One entry of a sendMediaGroup payload (InputMedia*)."""
    model_config = ConfigDict(extra='ignore')

    type: str
    media: str
    caption: Optional[str] = None


class AlbumBuffer(BaseModel):
    """
    Transient buffer for the parts of one album, keyed by
    ``mg:{direction}:{media_group_id}``. ``last_stamp`` is the
    ``time.time_ns()`` of the latest append and doubles as the flush token.
    """
    model_config = ConfigDict(extra='ignore')

    direction: AlbumDirection
    target_chat: int
    target_thread: Optional[int] = None
    # Where the first part came from; failure notices go back there.
    source_chat: Optional[int] = None
    source_thread: Optional[int] = None
    items: List[AlbumItem] = Field(default_factory=list)
    last_stamp: int = 0

    def media_payload(self) -> List[dict]:
        """Items in arrival order; only the first one keeps its caption."""
        payload = []
        for index, item in enumerate(self.items):
            entry = {"type": item.type, "media": item.media}
            if index == 0 and item.caption:
                entry["caption"] = item.caption
            payload.append(entry)
        return payload
