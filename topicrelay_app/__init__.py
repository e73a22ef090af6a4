# /topicrelay_app/__init__.py
import os
import logging
from logging.config import dictConfig

import click
from flask import Flask
import redis

from .config.config import Config
from .utils.logging_utils import JsonFormatter

# --- Logging Configuration ---
log_level_env = os.environ.get('LOG_LEVEL', 'INFO').upper()
log_dir_path = Config.LOG_DIR
os.makedirs(log_dir_path, exist_ok=True)

logging_config = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'json': {
            '()': JsonFormatter,
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
    },
    'handlers': {
        'console': {
            'level': log_level_env,
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'stream': 'ext://sys.stdout',
        },
        'app_file': {
            'level': log_level_env,
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'standard',
            'filename': Config.LOG_FILE,
            'maxBytes': 10485760,
            'backupCount': 5,
            'encoding': 'utf8',
        },
        'telegram_file': {
            'level': log_level_env,
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'standard',
            'filename': Config.TELEGRAM_LOG_FILE,
            'maxBytes': 5242880,
            'backupCount': 3,
            'encoding': 'utf8',
        },
        'json_file': {
            'level': log_level_env,
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'json',
            'filename': Config.LOG_JSON_FILE,
            'maxBytes': 10485760,
            'backupCount': 5,
            'encoding': 'utf8',
        }
    },
    'loggers': {
        '': {
            'handlers': ['console', 'app_file', 'json_file'],
            'level': log_level_env,
            'propagate': True
        },
        'werkzeug': {'handlers': ['console', 'app_file', 'json_file'], 'level': 'INFO', 'propagate': False,},
        'urllib3': {'handlers': ['console', 'app_file', 'json_file'], 'level': 'WARNING', 'propagate': False,},
        # Every Bot API call is logged here.
        'telegram': {'handlers': ['console', 'telegram_file', 'json_file'], 'level': log_level_env, 'propagate': False,},
        'celery': {'handlers': ['console', 'app_file', 'json_file'], 'level': log_level_env, 'propagate': False,},
        'topicrelay_app': {'handlers': ['console', 'app_file', 'json_file'], 'level': log_level_env, 'propagate': False}
    }
}
dictConfig(logging_config)
logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    logger.info("--- Creating Flask Application Instance ---")
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Shared Redis client; the connection is opened lazily on first command.
    try:
        app.redis_client = redis.Redis.from_url(app.config["REDIS_URL"])
        logger.info(f"Redis client initialized using URL: {app.config['REDIS_URL']}")
    except Exception as e:
        logger.exception(f"Failed to initialize Redis client: {e}")
        app.redis_client = None

    logger.info(f"Flask Environment: {app.config.get('FLASK_ENV', 'not_set')}")
    logger.info(f"Supergroup: {app.config.get('SUPERGROUP_ID') or 'MISSING'}")

    from .api import api_bp as api_module_blueprint
    app.register_blueprint(api_module_blueprint)
    logger.info(f"Main API Blueprint '{api_module_blueprint.name}' registered under url_prefix: {api_module_blueprint.url_prefix}")

    register_cli_commands(app)

    logger.info("--- Topic Relay Application Initialization Complete ---")
    return app


def register_cli_commands(app):

    @app.cli.command("set-webhook")
    @click.argument("url")
    def set_webhook_command(url):
        """Registers URL (ending in /api/telegram-webhook) with the Telegram Bot API."""
        from .extensions import get_telegram_service
        result = get_telegram_service().set_webhook(url)
        if result.ok:
            logger.info(f"Webhook set to {url} via CLI.")
            click.echo(f"Webhook set to {url}")
        else:
            logger.error(f"setWebhook failed via CLI: {result.description}")
            click.echo(f"setWebhook failed: {result.description}", err=True)

    @app.cli.command("list-threads")
    def list_threads_command():
        """Prints every user -> topic mapping stored in Redis."""
        from .extensions import get_store
        from .services.thread_mapping_service import ThreadRegistry
        registry = ThreadRegistry(get_store())
        records = registry.list_records()
        for user_id, record in records:
            status = "closed" if record.closed else "open"
            banned = " banned" if registry.is_banned(user_id) else ""
            click.echo(f"{user_id}\t{record.thread_id}\t{status}{banned}\t{record.title}")
        click.echo(f"{len(records)} conversation(s).")

    logger.info("Custom CLI commands registered.")

# Ensure Celery Tasks Are Imported so the worker can find them
import topicrelay_app.celery_tasks  # noqa: E402,F401
