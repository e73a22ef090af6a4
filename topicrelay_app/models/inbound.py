# topicrelay_app/models/inbound.py
# -*- coding: utf-8 -*-
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _TelegramObject(BaseModel):
    # The Bot API adds fields over time; anything we don't read is dropped.
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class Chat(_TelegramObject):
    id: int
    type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class Sender(_TelegramObject):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class PhotoSize(_TelegramObject):
    file_id: str
    width: int = 0
    height: int = 0


class FileRef(_TelegramObject):
    """Video, document and audio payloads; only the file id is relayed."""
    file_id: str


class InboundMessage(_TelegramObject):
    """
    The part of a Telegram ``Message`` the relay reads. Built from the
    ``message`` field of an incoming webhook update.
    """
    message_id: int
    chat: Chat
    from_user: Optional[Sender] = Field(default=None, alias='from')
    text: Optional[str] = None
    caption: Optional[str] = None
    message_thread_id: Optional[int] = None
    media_group_id: Optional[str] = None
    photo: Optional[List[PhotoSize]] = None
    video: Optional[FileRef] = None
    document: Optional[FileRef] = None
    audio: Optional[FileRef] = None
    # Service payloads are empty objects ({}), so presence is what matters.
    forum_topic_closed: Optional[Dict[str, Any]] = None
    forum_topic_reopened: Optional[Dict[str, Any]] = None

    @property
    def is_private(self) -> bool:
        return self.chat.type == 'private'

    @property
    def topic_closed(self) -> bool:
        return self.forum_topic_closed is not None

    @property
    def topic_reopened(self) -> bool:
        return self.forum_topic_reopened is not None
