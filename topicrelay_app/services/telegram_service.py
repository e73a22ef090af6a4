# topicrelay_app/services/telegram_service.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

# Dedicated logger, routed to telegram.log by the dictConfig in __init__.py
logger = logging.getLogger('telegram')


@dataclass
class TelegramResult:
    """Outcome of one Bot API call: ``ok`` plus either ``result`` or a ``description``."""
    ok: bool
    result: Any = None
    description: Optional[str] = None
    error_code: Optional[int] = None

    @property
    def message_id(self) -> Optional[int]:
        if isinstance(self.result, dict):
            return self.result.get('message_id')
        return None

    @property
    def delivered_thread_id(self) -> Optional[int]:
        """Forum topic the delivered message landed in; None for the General area."""
        if isinstance(self.result, dict) and self.result.get('is_topic_message'):
            return self.result.get('message_thread_id')
        return None


class TelegramService:
    """
    Thin client for the Telegram Bot API.

    Every method returns a :class:`TelegramResult`; nothing here raises on an
    API or transport error. Deciding what a failure means is the caller's job.
    """

    def __init__(self, bot_token: str, api_base: str = 'https://api.telegram.org',
                 timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, method: str, payload: Dict[str, Any]) -> TelegramResult:
        """POSTs ``payload`` as JSON to ``{api_base}/bot{token}/{method}``."""
        body = {k: v for k, v in payload.items() if v is not None}
        url = f"{self.api_base}/bot{self.bot_token}/{method}"
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Telegram {method} request failed: {e}")
            return TelegramResult(ok=False, description=str(e))

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Telegram {method} returned a non-JSON body (HTTP {response.status_code}): {e}")
            return TelegramResult(ok=False, description=f"invalid response from Telegram (HTTP {response.status_code})",
                                  error_code=response.status_code)

        if not data.get('ok'):
            result = TelegramResult(
                ok=False,
                description=data.get('description'),
                error_code=data.get('error_code'),
            )
            logger.warning(f"Telegram {method} failed ({result.error_code}): {result.description}")
            return result

        logger.debug(f"Telegram {method} ok.")
        return TelegramResult(ok=True, result=data.get('result'))

    # --- messages ---

    def send_text(self, chat_id: int, text: str, thread_id: Optional[int] = None,
                  parse_mode: Optional[str] = None) -> TelegramResult:
        return self.call('sendMessage', {
            'chat_id': chat_id,
            'message_thread_id': thread_id,
            'text': text,
            'parse_mode': parse_mode,
        })

    def forward_message(self, from_chat_id: int, message_id: int, chat_id: int,
                        thread_id: Optional[int] = None) -> TelegramResult:
        return self.call('forwardMessage', {
            'chat_id': chat_id,
            'from_chat_id': from_chat_id,
            'message_id': message_id,
            'message_thread_id': thread_id,
        })

    def copy_message(self, from_chat_id: int, message_id: int, chat_id: int,
                     thread_id: Optional[int] = None) -> TelegramResult:
        return self.call('copyMessage', {
            'chat_id': chat_id,
            'from_chat_id': from_chat_id,
            'message_id': message_id,
            'message_thread_id': thread_id,
        })

    def delete_message(self, chat_id: int, message_id: int) -> TelegramResult:
        return self.call('deleteMessage', {'chat_id': chat_id, 'message_id': message_id})

    def send_media_batch(self, chat_id: int, items: List[Dict[str, Any]],
                         thread_id: Optional[int] = None) -> TelegramResult:
        return self.call('sendMediaGroup', {
            'chat_id': chat_id,
            'message_thread_id': thread_id,
            'media': items,
        })

    # --- forum topics ---

    def create_thread(self, chat_id: int, title: str) -> TelegramResult:
        return self.call('createForumTopic', {'chat_id': chat_id, 'name': title})

    def set_thread_closed(self, chat_id: int, thread_id: int, closed: bool) -> TelegramResult:
        method = 'closeForumTopic' if closed else 'reopenForumTopic'
        return self.call(method, {'chat_id': chat_id, 'message_thread_id': thread_id})

    # --- users / setup ---

    def get_user_profile(self, user_id: int) -> TelegramResult:
        """getChat on the user's private chat: first_name, last_name, username."""
        return self.call('getChat', {'chat_id': user_id})

    def set_webhook(self, url: str) -> TelegramResult:
        return self.call('setWebhook', {'url': url, 'allowed_updates': ['message']})
