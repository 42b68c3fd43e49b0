"""
Configuration classes for the BotVault waitlist application
Loads settings from environment variables
"""

import os
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))


class Config:
    """Application configuration"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        raise RuntimeError("SECRET_KEY environment variable must be set")

    APP_ENV = os.environ.get('APP_ENV', 'production')
    DEBUG = os.environ.get('FLASK_ENV') == 'development' or os.environ.get('FLASK_DEBUG') == '1'

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.environ.get('SESSION_COOKIE_SAMESITE', 'Lax')
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', '1') == '1'

    # Project
    PROJECT_NAME = os.environ.get('PROJECT_NAME') or 'botvault'

    # Persistence: "sqlite" (local file) or "supabase" (hosted)
    DATABASE_BACKEND = os.environ.get('DATABASE_BACKEND', 'sqlite').lower()
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'waitlist.db'
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY') or os.environ.get('SUPABASE_KEY')
    SUPABASE_TIMEOUT_SECONDS = float(os.environ.get('SUPABASE_TIMEOUT_SECONDS', '10'))
    SIGNUPS_TABLE = os.environ.get('SIGNUPS_TABLE') or f'{PROJECT_NAME}_signups'
    VISITORS_TABLE = os.environ.get('VISITORS_TABLE') or f'{PROJECT_NAME}_visitors'

    # Waitlist form behavior
    TOAST_TIMEOUT_SECONDS = float(os.environ.get('TOAST_TIMEOUT_SECONDS', '3'))
    SUBMIT_COOLDOWN_SECONDS = float(os.environ.get('SUBMIT_COOLDOWN_SECONDS', '3'))
    VISITOR_TRACKING_ENABLED = os.environ.get('VISITOR_TRACKING_ENABLED', '1') == '1'

    # Backups (SQLite backend only)
    BACKUP_DIR = os.environ.get('BACKUP_DIR', 'backups')
    S3_BACKUP_BUCKET = os.environ.get('S3_BACKUP_BUCKET')
    AWS_REGION = os.environ.get('AWS_REGION')

    # Rate limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # Monitoring / logging
    SENTRY_DSN = os.environ.get('SENTRY_DSN')
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
