"""
Shared-secret gate for wizard endpoints (X-Wizard-Key header).
"""
import hmac
from typing import Optional

from fastapi import Header, Request

from label_engine.core.errors import AuthError, ServerMisconfiguredError


async def require_wizard_key(
    request: Request,
    x_wizard_key: Optional[str] = Header(default=None, alias="X-Wizard-Key"),
) -> None:
    """Dependency: reject the request unless X-Wizard-Key matches WIZARD_KEY."""
    expected = request.app.state.settings.WIZARD_KEY
    if not expected:
        raise ServerMisconfiguredError("Server misconfigured: WIZARD_KEY not set")
    if not x_wizard_key or not hmac.compare_digest(x_wizard_key, expected):
        raise AuthError("Wizard-only endpoint")
