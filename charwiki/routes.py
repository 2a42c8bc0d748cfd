"""
HTTP routes for the character wiki API.

Domain failures come back as 200 responses whose ``message`` explains the
outcome; only transport problems (bad token, oversized uploads, malformed
request bodies) use error status codes.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    UploadFile,
    status,
)

from charwiki.config import Settings
from charwiki.dependencies import (
    get_current_username,
    get_page_service,
    get_settings,
    get_static_store,
    get_user_service,
)
from charwiki.pages import PageService
from charwiki.results import Messages
from charwiki.schemas import (
    AdminLoginRequest,
    AdminLoginResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PageResponse,
    PermissionUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    StatusResponse,
)
from charwiki.storage import StaticFileStore, StoredUpload, UploadTooLarge
from charwiki.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=StatusResponse)
def get_status(settings: Settings = Depends(get_settings)):
    return StatusResponse(
        message=Messages.SERVER_RUNNING,
        port=settings.port,
        time=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/register", response_model=MessageResponse)
def register(
    payload: RegisterRequest, users: UserService = Depends(get_user_service)
):
    result = users.register(payload.username, payload.password, payload.email)
    return MessageResponse(message=result.message)


@router.post(
    "/login", response_model=LoginResponse, response_model_exclude_unset=True
)
def login(payload: LoginRequest, users: UserService = Depends(get_user_service)):
    result = users.login(payload.username, payload.password)
    return LoginResponse(**result.as_response())


@router.post("/reset", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest, users: UserService = Depends(get_user_service)
):
    result = users.reset_password(payload.username, payload.email, payload.password)
    return MessageResponse(message=result.message)


@router.get("/page", response_model=PageResponse, response_model_exclude_unset=True)
def get_page(
    route: Optional[str] = Header(None),
    pages: PageService = Depends(get_page_service),
):
    if not route:
        return PageResponse(data=[])
    return PageResponse(**pages.get_page(route))


@router.get(
    "/character/{character}",
    response_model=PageResponse,
    response_model_exclude_unset=True,
)
def get_character(character: str, pages: PageService = Depends(get_page_service)):
    return PageResponse(**pages.get_page(f"/character/{character}"))


@router.post("/page", response_model=MessageResponse)
def save_page(
    files: Optional[List[UploadFile]] = File(None),
    data: Optional[str] = Form(None),
    route: Optional[str] = Header(None),
    username: str = Depends(get_current_username),
    settings: Settings = Depends(get_settings),
    pages: PageService = Depends(get_page_service),
    store: StaticFileStore = Depends(get_static_store),
):
    """
    Saves a character page with its uploaded images.

    ``data`` is the JSON-encoded document; leaving it out only uploads the
    files. Images follow the ``profile_{block}_`` / ``content_{block}_{item}_``
    naming convention to be linked into the document.
    """
    files = files or []
    if len(files) > settings.upload_max_files:
        logger.warning("Rejected upload of %d files to %s", len(files), route)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=Messages.TOO_MANY_FILES,
        )
    if not route:
        return MessageResponse(message=Messages.MISSING_ROUTE)

    document = None
    if data:
        try:
            document = json.loads(data)
        except json.JSONDecodeError:
            return MessageResponse(message=Messages.INVALID_DATA_JSON)

    stored: List[StoredUpload] = []
    for upload in files:
        if not upload.filename:
            continue
        try:
            stored.append(
                store.save(upload.file, upload.filename, upload.content_type)
            )
        except UploadTooLarge as e:
            logger.warning("Rejected upload: %s", e)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=Messages.FILE_TOO_LARGE,
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = pages.save_character_page(route, stored, document, username)
    return MessageResponse(message=result.message)


@router.get("/user/info", response_model=MessageResponse)
def get_user_info(
    username: str = Depends(get_current_username),
    users: UserService = Depends(get_user_service),
):
    return MessageResponse(message=users.get_user_info(username).message)


@router.post(
    "/admin", response_model=AdminLoginResponse, response_model_exclude_unset=True
)
def admin_login(
    payload: AdminLoginRequest, users: UserService = Depends(get_user_service)
):
    result = users.admin_login(payload.username, payload.password)
    return AdminLoginResponse(**result.as_response())


@router.put("/user/permission", response_model=MessageResponse)
def update_user_permission(
    payload: PermissionUpdateRequest, users: UserService = Depends(get_user_service)
):
    result = users.update_user_permission(payload.username, payload.editPermission)
    return MessageResponse(message=result.message)
