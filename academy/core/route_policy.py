"""Which dashboard screens each role may open, and where everyone else is sent."""
from __future__ import annotations

import re
from dataclasses import dataclass

from academy.models import Role


LANDING_PATH = '/'
NO_ROLE_PATH = '/index'
COACH_HOME_PATH = '/dashboard'

PUBLIC_PATHS = ('/', '/login', '/forgot-password', '/index')

_BOTH_ROLES = (Role.ADMIN.value, Role.COACH.value)
_ADMIN_ONLY = (Role.ADMIN.value,)


@dataclass(frozen=True)
class RouteRule:
    pattern: str
    label: str
    allowed_roles: tuple[str, ...]
    in_navigation: bool = True

    @property
    def restricted_for_coach(self) -> bool:
        return Role.COACH.value not in self.allowed_roles

    def matches(self, path: str) -> bool:
        return re.fullmatch(self.pattern, path) is not None


ROUTE_RULES = (
    RouteRule(r'/dashboard', 'Dashboard', _BOTH_ROLES),
    RouteRule(r'/dashboard/calendar', 'Calendar', _BOTH_ROLES),
    RouteRule(r'/dashboard/sessions', 'Sessions', _ADMIN_ONLY),
    RouteRule(r'/dashboard/attendance', 'Attendance', _BOTH_ROLES),
    RouteRule(r'/dashboard/attendance/\d+', 'Session Attendance', _BOTH_ROLES, in_navigation=False),
    RouteRule(r'/dashboard/students', 'Students', _ADMIN_ONLY),
    RouteRule(r'/dashboard/coaches', 'Coaches', _ADMIN_ONLY),
    RouteRule(r'/dashboard/branches', 'Branches', _ADMIN_ONLY),
    RouteRule(r'/settings', 'Settings', _BOTH_ROLES),
)


def _normalize(path: str) -> str:
    clean = (path or '/').split('?', 1)[0]
    if len(clean) > 1:
        clean = clean.rstrip('/')
    return clean or '/'


def is_public_path(path: str) -> bool:
    return _normalize(path) in PUBLIC_PATHS


def match_route(path: str) -> RouteRule | None:
    clean = _normalize(path)
    for rule in ROUTE_RULES:
        if rule.matches(clean):
            return rule
    return None


def redirect_for(path: str, authenticated: bool, role: str | None) -> str | None:
    """Return where to send the caller, or ``None`` when the screen may be shown."""
    rule = match_route(path)
    if rule is None:
        return None
    if not authenticated:
        return LANDING_PATH
    if role not in _BOTH_ROLES:
        return NO_ROLE_PATH
    if role in rule.allowed_roles:
        return None
    return COACH_HOME_PATH


def navigation_for(role: str | None) -> list[dict]:
    if role not in _BOTH_ROLES:
        return []
    return [
        {'label': rule.label, 'path': rule.pattern}
        for rule in ROUTE_RULES
        if rule.in_navigation and role in rule.allowed_roles
    ]
