# topicrelay_app/config/config.py
# -*- coding: utf-8 -*-
import os
from dotenv import load_dotenv

# Project root is two levels up from this file (topicrelay_app/config/).
project_root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))

# Tests set FLASK_ENV=testing; a .env.test file then overrides the regular .env values.
if os.environ.get('FLASK_ENV') == 'testing':
    test_dotenv_path = os.path.join(project_root_dir, '.env.test')
    if os.path.exists(test_dotenv_path):
        load_dotenv(dotenv_path=test_dotenv_path, override=True)
        print(f"DEBUG [config.py]: LOADED TEST CONFIG from: {test_dotenv_path}")

basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
dotenv_path = os.path.join(basedir, '.env')

if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path, override=False)
    print(f"DEBUG [config.py]: Loaded .env from: {dotenv_path}")


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # --- Flask App ---
    SECRET_KEY = os.environ.get('SECRET_KEY', 'default-insecure-secret-key')
    FLASK_ENV = os.environ.get('FLASK_ENV', 'production')
    DEBUG = FLASK_ENV == 'development'

    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.environ.get('LOG_DIR', os.path.join(basedir, 'logs'))
    LOG_FILE = os.path.join(LOG_DIR, 'app.log')
    TELEGRAM_LOG_FILE = os.path.join(LOG_DIR, 'telegram.log')
    LOG_JSON_FILE = os.path.join(LOG_DIR, 'app.json')

    # --- Telegram Bot API ---
    BOT_TOKEN = os.environ.get('BOT_TOKEN')
    SUPERGROUP_ID = os.environ.get('SUPERGROUP_ID', '')
    TELEGRAM_API_BASE = os.environ.get('TELEGRAM_API_BASE', 'https://api.telegram.org').rstrip('/')
    TELEGRAM_TIMEOUT_SECONDS = float(os.environ.get('TELEGRAM_TIMEOUT_SECONDS', 15))

    # --- Redis / Celery 5+ ---
    broker_url = os.environ.get('broker_url', 'redis://localhost:6379/0')
    result_backend = os.environ.get('result_backend', 'redis://localhost:6379/0')
    task_serializer = os.environ.get('task_serializer', 'json')
    result_serializer = os.environ.get('result_serializer', 'json')
    accept_content = [os.environ.get('accept_content', 'json')]
    timezone = os.environ.get('timezone', 'UTC')
    enable_utc = os.environ.get('enable_utc', 'true').lower() == 'true'
    REDIS_URL = os.environ.get('REDIS_URL', broker_url)

    # --- Album aggregation ---
    # Quiet period before a buffered album is flushed, and the safety TTL of the buffer key.
    ALBUM_QUIET_SECONDS = float(os.environ.get('ALBUM_QUIET_SECONDS', 2))
    ALBUM_BUFFER_TTL = int(os.environ.get('ALBUM_BUFFER_TTL', 60))

    # --- Relay policy ---
    REQUIRE_USERNAME = _env_bool('REQUIRE_USERNAME')
    CLOSED_NOTICE = os.environ.get('CLOSED_NOTICE', '🚫 This conversation has been closed by an administrator.')
    USERNAME_REQUIRED_NOTICE = os.environ.get(
        'USERNAME_REQUIRED_NOTICE',
        '⚠️ *Please set a Telegram username before sending messages.*'
    )
    SYSTEM_ERROR_NOTICE = os.environ.get('SYSTEM_ERROR_NOTICE', '⚠️ System error')


# --- Config Sanity Check ---
if __name__ != "__main__":
    if not Config.BOT_TOKEN:
        print("WARNING [Config]: BOT_TOKEN is not set. Telegram calls will fail.")
    if not Config.SUPERGROUP_ID:
        print("WARNING [Config]: SUPERGROUP_ID is not set. Group messages will be ignored.")
    elif not Config.SUPERGROUP_ID.startswith('-100'):
        print(f"WARNING [Config]: SUPERGROUP_ID '{Config.SUPERGROUP_ID}' does not start with -100.")
