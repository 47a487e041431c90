"""
Centralized logging configuration with Sentry integration.

Provides structured console logging and error tracking for the membership service.
"""

import logging
import sys
from typing import Dict, Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from vision.core.config import settings


SENSITIVE_FIELDS = [
    'password', 'token', 'secret', 'authorization',
    'api_key', 'access_token', 'refresh_token', 'private_key',
]

SENSITIVE_HEADERS = [
    'Authorization', 'Cookie', 'X-API-Key', 'X-Auth-Token'
]


def init_sentry():
    """
    Initialize Sentry for error tracking and performance monitoring.

    Only initializes if SENTRY_DSN is configured.
    """
    if not settings.SENTRY_DSN:
        logging.info("SENTRY_DSN not configured. Sentry disabled.")
        return

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT or settings.MODE,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
            ],
            before_send=filter_sensitive_data,
            send_default_pii=False,
            attach_stacktrace=True,
            max_breadcrumbs=50,
        )
        logging.info(f"Sentry initialized successfully for environment: {settings.MODE}")
    except Exception as e:
        logging.error(f"Failed to initialize Sentry: {e}")


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    """
    Filter sensitive data before sending to Sentry.

    Ban reasons are free text written by moderators and are masked as well.

    Args:
        event: Sentry event dictionary
        hint: Sentry hint dictionary

    Returns:
        Modified event with sensitive data removed
    """
    request = event.get('request') or {}

    data = request.get('data')
    if isinstance(data, dict):
        for field in SENSITIVE_FIELDS + ['ban_reason']:
            if field in data:
                data[field] = '[FILTERED]'

    headers = request.get('headers')
    if isinstance(headers, dict):
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = '[FILTERED]'

    return event


def capture_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    user: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None
) -> Optional[str]:
    """
    Capture an error and send to Sentry with context.

    Args:
        error: Exception to capture
        context: Additional context dict to attach
        user: User information dict (id, username)
        tags: Tags to attach to the event

    Returns:
        Sentry event ID if sent, None otherwise
    """
    try:
        with sentry_sdk.new_scope() as scope:
            if user:
                scope.set_user({
                    "id": user.get("id"),
                    "username": user.get("username"),
                })

            if context:
                for key, value in context.items():
                    scope.set_context(key, value)

            if tags:
                for key, value in tags.items():
                    scope.set_tag(key, value)

            event_id = sentry_sdk.capture_exception(error)
            if event_id:
                logging.info(f"Error captured in Sentry with event ID: {event_id}")
            return event_id
    except Exception as e:
        logging.error(f"Failed to capture error in Sentry: {e}")
        logging.error(f"Original error: {error}", exc_info=error)
        return None


def setup_logging():
    """
    Configure logging for the application.

    Sets up the root console handler and the log level.
    """
    log_level = settings.LOG_LEVEL.upper()

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level))

    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level))

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    logging.info(f"Logging configured with level: {log_level}")
