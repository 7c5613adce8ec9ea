"""
FastAPI dependencies.

The settings, store and classifier are created once in ``create_app`` and
hung on ``app.state``; handlers receive them (and the admin session, when
there is one) explicitly through these dependencies.
"""
from fastapi import Depends, HTTPException, Request, status

from .auth import is_authenticated, session_from_request
from .classification import TagClassifier
from .config import Settings
from .models import AdminSession, Group
from .storage import GroupStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> GroupStore:
    return request.app.state.store


def get_classifier(request: Request) -> TagClassifier:
    return request.app.state.classifier


def optional_admin(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> AdminSession | None:
    """The admin session when a valid token came with the request, else None."""
    return session_from_request(request, settings)


def require_admin(session: AdminSession | None = Depends(optional_admin)) -> AdminSession:
    """
    Guard for admin-only routes.

    Usage:
        @router.post("/groups")
        def create(session: AdminSession = Depends(require_admin)): ...
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def load_group(store: GroupStore, group_id: str) -> Group:
    group = store.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Group not found: {group_id}")
    return group


def get_visible_group(
    group_id: str,
    request: Request,
    store: GroupStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Group:
    """A group readable by the caller: public groups for everyone, private ones for the admin."""
    group = load_group(store, group_id)
    if not group.metadata.is_public and not is_authenticated(request, settings):
        raise HTTPException(status_code=403, detail="This group is not public")
    return group
