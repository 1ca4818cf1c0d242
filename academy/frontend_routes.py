from __future__ import annotations

from urllib.parse import quote

from academy.config import settings


def _base() -> str:
    return settings.frontend_base_url.rstrip('/')


def password_reset_url(token: str) -> str:
    return f"{_base()}/forgot-password?token={quote(token, safe='')}"


def attendance_session_url(session_id: int) -> str:
    return f"{_base()}/dashboard/attendance/{session_id}"
