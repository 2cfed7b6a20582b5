import re
from dataclasses import dataclass

_MARKUP = re.compile(r"<[^>]*>")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 255


def safe_user_agent(user_agent: str | None) -> str:
    """Strip markup and control characters, bound the length."""
    if not user_agent or not isinstance(user_agent, str):
        return "unknown"
    cleaned = _CONTROL_CHARS.sub("", _MARKUP.sub("", user_agent)).strip()
    return cleaned[:MAX_USER_AGENT_LENGTH] or "unknown"


def safe_ip(ip: str | None) -> str | None:
    if not ip or not isinstance(ip, str):
        return None
    return ip[:MAX_IP_LENGTH]


@dataclass(frozen=True)
class RequestContext:
    """
    Per-request values passed explicitly through every service call.

    Used for audit correlation and for the diagnostic fields stored on
    refresh token records. Never trusted for security decisions.
    """
    request_id: str = "no-request-id"
    ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def build(cls, request_id: str | None, ip: str | None, user_agent: str | None) -> "RequestContext":
        return cls(
            request_id=request_id or "no-request-id",
            ip=safe_ip(ip),
            user_agent=safe_user_agent(user_agent),
        )


SYSTEM_CONTEXT = RequestContext(request_id="system")
