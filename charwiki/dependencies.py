"""
Dependency wiring for the FastAPI app.

Everything hangs off ``app.state``: the settings object passed to
``create_app`` and the clients built from it at startup.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from charwiki.config import Settings
from charwiki.db import DbClient, InMemoryDbClient, prepare_database
from charwiki.pages import PageService
from charwiki.results import Messages
from charwiki.storage import LocalStaticStore, StaticFileStore
from charwiki.tokens import InvalidToken, decode_token
from charwiki.users import UserService

_bearer = HTTPBearer(auto_error=False)


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends:
        return InMemoryDbClient()
    return prepare_database(settings)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db_client(request: Request) -> DbClient:
    """
    Return the app's DB client, creating it on first use.
    """
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = build_db_client(request.app.state.settings)
        request.app.state.db = db
    return db


def get_static_store(request: Request) -> StaticFileStore:
    store = getattr(request.app.state, "static_store", None)
    if store is None:
        settings = request.app.state.settings
        store = LocalStaticStore(
            root=settings.static_dir, max_file_size=settings.upload_max_file_size
        )
        request.app.state.static_store = store
    return store


def get_user_service(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(db, settings)


def get_page_service(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> PageService:
    return PageService(db, settings)


def get_current_username(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> str:
    """Resolves the bearer token to a username, or answers 401."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=Messages.UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_token(credentials.credentials, settings)
    except InvalidToken:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=Messages.UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
