"""
Request-scoped dependencies shared by all routers.

get_current_user_id — caller identity from the identity provider header
get_now             — the caller's clock (overridden in tests)
get_broadcaster     — the process-wide realtime Broadcaster
"""
from datetime import datetime

from fastapi import Request

from taskwatch.core.config import settings
from taskwatch.core.errors import AuthenticationRequiredError
from taskwatch.core.realtime import Broadcaster
from taskwatch.db.types import utcnow


def get_current_user_id(request: Request) -> str:
    user_id = (request.headers.get(settings.IDENTITY_HEADER) or "").strip()
    if not user_id:
        raise AuthenticationRequiredError()
    return user_id


def get_now() -> datetime:
    return utcnow()


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster
