"""Business logic services for the Leadership Assessment API."""

from .token import create_token, decode_token, should_refresh_token
from .rbac import RequestContext, require_role, require_admin, get_current_user

__all__ = [
    "create_token",
    "decode_token",
    "should_refresh_token",
    "RequestContext",
    "require_role",
    "require_admin",
    "get_current_user",
]
