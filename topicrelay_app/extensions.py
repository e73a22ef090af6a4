from flask import current_app
from redis import Redis

from .services.album_service import AlbumService
from .services.kv_store import RedisKeyValueStore
from .services.relay_service import RelayService
from .services.telegram_service import TelegramService
from .services.thread_mapping_service import ThreadRegistry


def get_redis_client() -> Redis:
    """Return a shared Redis client if available, otherwise create one."""
    client = getattr(current_app, "redis_client", None)
    if client is None:
        client = Redis.from_url(current_app.config["REDIS_URL"])
        current_app.redis_client = client
    return client


def get_store() -> RedisKeyValueStore:
    return RedisKeyValueStore(get_redis_client())


def get_telegram_service() -> TelegramService:
    config = current_app.config
    return TelegramService(
        bot_token=config.get("BOT_TOKEN"),
        api_base=config.get("TELEGRAM_API_BASE", "https://api.telegram.org"),
        timeout=config.get("TELEGRAM_TIMEOUT_SECONDS", 15),
    )


def get_album_service(store=None, telegram=None) -> AlbumService:
    config = current_app.config
    store = store or get_store()
    return AlbumService(
        store,
        telegram or get_telegram_service(),
        quiet_seconds=config.get("ALBUM_QUIET_SECONDS", 2),
        buffer_ttl=config.get("ALBUM_BUFFER_TTL", 60),
        registry=ThreadRegistry(store),
        error_notice=config.get("SYSTEM_ERROR_NOTICE", "⚠️ System error"),
    )


def get_relay_service() -> RelayService:
    """Builds the relay with its registry, gateway and album aggregator for the current app."""
    config = current_app.config
    store = get_store()
    telegram = get_telegram_service()
    return RelayService(
        registry=ThreadRegistry(store),
        telegram=telegram,
        albums=get_album_service(store, telegram),
        group_id=config.get("SUPERGROUP_ID"),
        closed_notice=config.get("CLOSED_NOTICE"),
        username_required_notice=config.get("USERNAME_REQUIRED_NOTICE"),
        require_username=config.get("REQUIRE_USERNAME", False),
    )
