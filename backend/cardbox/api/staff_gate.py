"""Staff Gate — placeholder access check for staff-only routes.

Invariants:
    - With no staff_token configured every request passes (local development)
    - With a token configured, X-Staff-Token must match exactly (constant-time compare)
"""

import secrets

from fastapi import Depends, Header

from cardbox.core.errors import StaffAccessDeniedError
from cardbox.services.container import Services, get_services


async def require_staff(
    x_staff_token: str | None = Header(None),
    services: Services = Depends(get_services),
) -> None:
    expected = services.staff_token
    if expected is None:
        return
    if not x_staff_token or not secrets.compare_digest(x_staff_token, expected):
        raise StaffAccessDeniedError()
