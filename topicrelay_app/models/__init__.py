from .thread_record import ThreadRecord, AlbumDirection, AlbumItem, AlbumBuffer
from .inbound import InboundMessage, Chat, Sender

__all__ = [
    "ThreadRecord",
    "AlbumDirection",
    "AlbumItem",
    "AlbumBuffer",
    "InboundMessage",
    "Chat",
    "Sender",
]
