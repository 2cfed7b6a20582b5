"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict, Optional

AUDIT_LOGGER_NAME = "audit"
DIGEST_PREFIX_LENGTH = 8


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Configured logger

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def digest_prefix(digest: Optional[str]) -> Optional[str]:
    """Short, log-safe prefix of a token digest."""
    if not digest:
        return None
    return digest[:DIGEST_PREFIX_LENGTH]


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from log data.

    - passwords and secrets are fully redacted
    - tokens keep their first 8 characters
    - digests are cut down to their prefix

    Args:
        data: Dictionary that may contain sensitive fields

    Returns:
        Sanitized copy safe for logging
    """
    sensitive_fields = {
        'password', 'token', 'secret', 'api_key', 'access_token',
        'refresh_token', 'cookie', 'authorization'
    }

    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()

        if 'digest' in lowered and isinstance(value, str):
            sanitized[key] = digest_prefix(value)

        elif any(sensitive in lowered for sensitive in sensitive_fields):
            if isinstance(value, str):
                if 'token' in lowered and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    request_id: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log HTTP request in a structured format.

    Usage:
        log_request(logger, "POST", "/auth/refresh", 200, 45.2, client_ip="10.0.0.1")
    """
    log_data = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "client_ip": client_ip or "unknown",
    }

    if request_id:
        log_data["request_id"] = request_id

    if extra:
        log_data.update(sanitize_log_data(extra))

    message = f'{log_data["client_ip"]} - "{method} {path}" {status_code}'
    if status_code >= 500:
        logger.error(message, extra=log_data)
    elif status_code >= 400:
        logger.warning(message, extra=log_data)
    else:
        logger.info(message, extra=log_data)


def log_audit_event(
    event: str,
    context,
    level: int = logging.INFO,
    **fields: Any
):
    """
    Emit a structured audit event for the session lifecycle.

    Events: issued, rotated, reuse_detected, logout, logout_failed, logout_all,
    expired_swept (system context).
    Raw tokens must never be passed here; digests are reduced to a prefix.

    Args:
        event: Event name
        context: RequestContext of the triggering request
        level: Log level (reuse detection uses WARNING)
        **fields: Event specific data (user_id, token_digest, count, ...)
    """
    payload = {
        "event": event,
        "request_id": context.request_id,
        "client_ip": context.ip,
    }
    payload.update(sanitize_log_data(fields))

    logging.getLogger(AUDIT_LOGGER_NAME).log(level, f"audit: {event}", extra=payload)
