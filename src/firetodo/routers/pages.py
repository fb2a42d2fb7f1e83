from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from ..auth import get_optional_session
from ..errors import error_message
from ..oauth import configured_providers
from ..settings import Settings, get_settings

router = APIRouter(tags=["pages"])


# PUBLIC_INTERFACE
@router.get("/dashboard", summary="Dashboard", response_model=None)
def dashboard(
    session: Optional[Dict[str, Any]] = Depends(get_optional_session),
    settings: Settings = Depends(get_settings),
) -> Any:
    """
    Signed-in landing page data. Without a valid session the caller is
    sent to the login page.
    """
    if session is None:
        return RedirectResponse(url=f"{settings.base_url}/login", status_code=307)
    user = {k: v for k, v in session["user"].items() if k != "accessToken"}
    return {"user": user}


# PUBLIC_INTERFACE
@router.get("/login", summary="Login", response_model=None)
def login(
    error: Optional[str] = Query(None),
    session: Optional[Dict[str, Any]] = Depends(get_optional_session),
    settings: Settings = Depends(get_settings),
) -> Any:
    """
    Login page data: enabled providers and the message for `?error=`.
    Already signed-in callers go straight to the dashboard.
    """
    if session is not None:
        return RedirectResponse(url=f"{settings.base_url}/dashboard", status_code=307)
    return {
        "providers": ["credentials", *configured_providers(settings)],
        "error": error_message(error) if error else None,
    }
