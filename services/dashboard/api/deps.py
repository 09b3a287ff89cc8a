"""
Shared FastAPI dependencies for the dashboard API.
"""

from fastapi import HTTPException, status

from safetrack.services import Components


def get_components() -> Components:
    """
    Get the running components.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    from services.dashboard.app import app_state

    if app_state.components is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard is starting",
        )
    return app_state.components


def require_auth() -> None:
    """Reject requests until an operator has signed in."""
    components = get_components()
    if not components.session.is_authenticated():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
        )
