"""
Caller identity dependencies.

Authentication happens upstream (gateway / auth service). By the time a
request reaches us, the caller has been verified and is described by headers:

- X-User-Id   : id of the owning customer
- X-Operator  : operator email/name (recorded as `updated_by` in history)
- X-Role      : "admin" for operator endpoints
"""

from __future__ import annotations

from fastapi import Header

from tradein_engine.core.errors import ForbiddenError, UnauthorizedError

OPERATOR_ROLE = "admin"


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedError(code="missing_user", message="Caller identity missing (X-User-Id)")
    return user_id


async def require_operator(
    x_operator: str | None = Header(default=None),
    x_role: str | None = Header(default=None),
) -> str:
    operator = (x_operator or "").strip()
    if not operator:
        raise UnauthorizedError(code="missing_operator", message="Operator identity missing (X-Operator)")
    if (x_role or "").strip().lower() != OPERATOR_ROLE:
        raise ForbiddenError(code="operator_role_required", message="Operator role required")
    return operator
