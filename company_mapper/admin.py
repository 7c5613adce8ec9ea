"""
Admin Routes
============

POST   /admin/auth/login                         - Login with email/password
POST   /admin/auth/logout                        - Clear the session cookie
GET    /admin/auth/me                            - Current admin session

GET    /admin/groups                             - All groups, private included
POST   /admin/groups                             - Upload a new group
GET    /admin/groups/{id}                        - Group with its tags and comments
PUT    /admin/groups/{id}                        - Update metadata and/or data
DELETE /admin/groups/{id}                        - Delete a group and its annotations
GET    /admin/groups/{id}/tags                   - Custom tags by company
POST   /admin/groups/{id}/tags                   - Add (or replace) a company tag
DELETE /admin/groups/{id}/tags/{company}/{type}  - Remove a company tag
POST   /admin/groups/{id}/comments               - Comment on a company
PUT    /admin/groups/{id}/comments/{comment_id}  - Edit a comment
DELETE /admin/groups/{id}/comments/{comment_id}  - Delete a comment
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from .auth import create_session_token, verify_credentials
from .config import Settings
from .dependencies import get_app_settings, get_store, load_group, require_admin
from .models import (
    AdminSession,
    Comment,
    CommentCreateRequest,
    CommentUpdateRequest,
    CompanyTags,
    CustomTag,
    DiliTrustModule,
    GroupCreateRequest,
    GroupDetailResponse,
    GroupMetadata,
    GroupUpdateRequest,
    LoginRequest,
    LoginResponse,
    TagAddRequest,
    TagType,
)
from .storage import GroupStore, validate_company_data
from .tree import find_company_by_id

logger = logging.getLogger(__name__)

auth_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_admin)])


def _check_dilitrust_modules(tags: list[TagType], modules: list[DiliTrustModule]):
    if TagType.CLIENT_DILITRUST in tags and not modules:
        raise HTTPException(
            status_code=400,
            detail="DiliTrust modules are required for DiliTrust clients",
        )


def _require_company(store: GroupStore, group_id: str, company_id: str):
    group = load_group(store, group_id)
    if find_company_by_id(group.data.company, company_id) is None:
        raise HTTPException(status_code=404, detail=f"Company not found: {company_id}")


# ============================================================
# Authentication
# ============================================================

@auth_router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, response: Response, settings: Settings = Depends(get_app_settings)):
    if not verify_credentials(body.email, body.password, settings):
        logger.warning("Failed admin login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token, expires_at = create_session_token(body.email.strip(), settings)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
    )
    logger.info("Admin logged in")
    return LoginResponse(access_token=token, expires_at=expires_at)


@auth_router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"status": "logged out"}


@auth_router.get("/me", response_model=AdminSession)
def me(session: AdminSession = Depends(require_admin)):
    return session


# ============================================================
# Groups
# ============================================================

@router.get("/groups", response_model=list[GroupMetadata])
def list_groups(store: GroupStore = Depends(get_store)):
    return store.list_groups(public_only=False)


@router.post("/groups", response_model=GroupMetadata, status_code=201)
def create_group(
    body: GroupCreateRequest,
    store: GroupStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    _check_dilitrust_modules(body.tags, body.dilitrust_modules)
    data = validate_company_data(body.json_data, settings.MAX_TREE_DEPTH)
    return store.create_group(
        body.name,
        data,
        description=body.description,
        tags=body.tags,
        dilitrust_modules=body.dilitrust_modules,
        comments=body.comments,
        is_public=body.is_public,
    )


@router.get("/groups/{group_id}", response_model=GroupDetailResponse)
def get_group(group_id: str, store: GroupStore = Depends(get_store)):
    group = load_group(store, group_id)
    return GroupDetailResponse(
        group=group,
        comments=store.get_comments(group_id),
        tags=store.get_tags(group_id),
    )


@router.put("/groups/{group_id}", response_model=GroupMetadata)
def update_group(
    group_id: str,
    body: GroupUpdateRequest,
    store: GroupStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    current = store.get_group_metadata(group_id)
    if current is None:
        raise HTTPException(status_code=404, detail=f"Group not found: {group_id}")

    tags = body.tags if body.tags is not None else current.tags
    modules = body.dilitrust_modules if body.dilitrust_modules is not None else current.dilitrust_modules
    _check_dilitrust_modules(tags, modules)

    new_data = None
    if body.json_data is not None:
        new_data = validate_company_data(body.json_data, settings.MAX_TREE_DEPTH)

    updates = body.model_dump(exclude={"json_data"}, exclude_none=True)
    return store.update_group(group_id, updates, new_data)


@router.delete("/groups/{group_id}")
def delete_group(group_id: str, store: GroupStore = Depends(get_store)):
    if not store.delete_group(group_id):
        raise HTTPException(status_code=404, detail=f"Group not found: {group_id}")
    return {"status": "deleted", "id": group_id}


# ============================================================
# Custom tags
# ============================================================

@router.get("/groups/{group_id}/tags", response_model=CompanyTags)
def get_tags(group_id: str, store: GroupStore = Depends(get_store)):
    load_group(store, group_id)
    return store.get_tags(group_id)


@router.post("/groups/{group_id}/tags", response_model=list[CustomTag])
def add_tag(group_id: str, body: TagAddRequest, store: GroupStore = Depends(get_store)):
    """Tag a company. Adding a type the company already has replaces that tag."""
    _require_company(store, group_id, body.company_id)
    return store.add_tag(group_id, body.company_id, body.tag)


@router.delete("/groups/{group_id}/tags/{company_id}/{tag_type}")
def remove_tag(group_id: str, company_id: str, tag_type: TagType,
               store: GroupStore = Depends(get_store)):
    if not store.remove_tag(group_id, company_id, tag_type):
        raise HTTPException(status_code=404, detail=f"{company_id} has no {tag_type.value} tag")
    return {"status": "deleted"}


# ============================================================
# Comments
# ============================================================

@router.post("/groups/{group_id}/comments", response_model=Comment, status_code=201)
def add_comment(group_id: str, body: CommentCreateRequest, store: GroupStore = Depends(get_store)):
    _require_company(store, group_id, body.company_id)
    return store.add_comment(group_id, body.company_id, body.text, body.author)


@router.put("/groups/{group_id}/comments/{comment_id}", response_model=Comment)
def update_comment(group_id: str, comment_id: str, body: CommentUpdateRequest,
                   store: GroupStore = Depends(get_store)):
    comment = store.update_comment(group_id, comment_id, body.text)
    if comment is None:
        raise HTTPException(status_code=404, detail=f"Comment not found: {comment_id}")
    return comment


@router.delete("/groups/{group_id}/comments/{comment_id}")
def delete_comment(group_id: str, comment_id: str, store: GroupStore = Depends(get_store)):
    if not store.delete_comment(group_id, comment_id):
        raise HTTPException(status_code=404, detail=f"Comment not found: {comment_id}")
    return {"status": "deleted"}
