"""Role-based access control and request context for admin endpoints."""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import HTTPException, Query, Request
import structlog

logger = structlog.get_logger()


# Role levels - a higher level includes the permissions of every lower one
ROLE_LEVELS = {
    "super_admin": 6,
    "admin": 5,
    "chair": 4,
    "co_chair": 3,
    "em": 2,
    "user": 1,
}

ROLE_HIERARCHY = {
    role: [other for other, other_level in ROLE_LEVELS.items() if other_level <= level]
    for role, level in ROLE_LEVELS.items()
}


@dataclass(frozen=True)
class RequestContext:
    """Resolved caller identity passed explicitly into services."""

    chapter_id: int
    role: str
    user_id: Optional[str] = None


def get_user_role(roles: list[str]) -> str:
    """
    Get the highest known role from the token's role claims.

    Args:
        roles: Role names from token

    Returns:
        Highest role, or "user" when none is recognised
    """
    known = [role for role in roles if role in ROLE_LEVELS]
    if not known:
        return "user"
    return max(known, key=lambda role: ROLE_LEVELS[role])


def has_role(user_roles: list[str], required_role: str) -> bool:
    """Check if user has the required role or higher."""
    user_role = get_user_role(user_roles)
    return required_role in ROLE_HIERARCHY.get(user_role, [])


def get_current_user(request: Request) -> dict[str, Any]:
    """
    Get current user from request state.

    Usage:
        @router.get("/me")
        def get_me(user: dict = Depends(get_current_user)):
            return user
    """
    if not hasattr(request.state, "user"):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return request.state.user


def build_context(user: dict[str, Any], chapter_override: Optional[int] = None) -> RequestContext:
    """Resolve {chapter_id, role} from token claims.

    Only super admins may act on a chapter other than their own.
    """
    role = get_user_role(user.get("roles", []))
    chapter_id = user.get("chapter_id")

    if chapter_override is not None and chapter_override != chapter_id:
        if role != "super_admin":
            raise HTTPException(
                status_code=403,
                detail="You don't have permission to access this chapter",
            )
        chapter_id = chapter_override

    if chapter_id is None:
        raise HTTPException(status_code=403, detail="No chapter assigned")

    return RequestContext(chapter_id=int(chapter_id), role=role, user_id=user.get("sub"))


def require_role(allowed_roles: list[str]) -> Callable:
    """
    Dependency that requires one of the specified roles (or higher).

    Usage:
        @router.post("/admin-only")
        def admin_endpoint(ctx: RequestContext = Depends(require_role(["admin"]))):
            ...
    """
    def check_role(
        request: Request,
        chapter_id: Optional[int] = Query(None, alias="chapterId"),
    ) -> RequestContext:
        user = get_current_user(request)
        user_roles = user.get("roles", [])

        for role in allowed_roles:
            if has_role(user_roles, role):
                logger.debug(
                    "Role check passed",
                    user=user.get("sub"),
                    required=allowed_roles,
                    user_role=get_user_role(user_roles),
                )
                return build_context(user, chapter_override=chapter_id)

        logger.warning(
            "Role check failed",
            user=user.get("sub"),
            required=allowed_roles,
            user_roles=user_roles,
        )
        raise HTTPException(
            status_code=403,
            detail="You don't have permission to access this resource",
        )

    return check_role


require_admin = require_role(["admin"])
require_reviewer = require_role(["em"])
