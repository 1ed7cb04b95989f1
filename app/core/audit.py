# app/core/audit.py
import logging

from fastapi import Request

logger = logging.getLogger("auth")


def log_auth_event(
    action: str,
    request: Request,
    username: str | None = None,
    status: str = "success",
    extra: dict | None = None,
) -> None:
    """Emit a structured auth event with action, user, ip, and status."""
    payload = {
        "action": action,
        "ip": request.client.host if request.client else None,
        "status": status,
    }
    if username is not None:
        payload["username"] = username
    if extra:
        payload.update(extra)
    logger.info(payload)
