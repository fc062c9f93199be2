"""Per-request actor information used to stamp audit rows"""

from contextvars import ContextVar
from typing import Optional

current_user_id: ContextVar[Optional[int]] = ContextVar("current_user_id", default=None)
current_ip: ContextVar[Optional[str]] = ContextVar("current_ip", default=None)
current_user_agent: ContextVar[Optional[str]] = ContextVar("current_user_agent", default=None)


def set_request_context(user_id: Optional[int], ip: Optional[str], user_agent: Optional[str]) -> None:
    current_user_id.set(user_id)
    current_ip.set(ip)
    current_user_agent.set(user_agent[:500] if user_agent else None)


def get_request_context() -> dict:
    return {
        "user_id": current_user_id.get(),
        "ip_address": current_ip.get(),
        "user_agent": current_user_agent.get(),
    }
