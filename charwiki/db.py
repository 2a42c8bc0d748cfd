"""
Database abstraction for MySQL (or any SQLAlchemy URL) and an in-memory test implementation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    SmallInteger,
    String,
    Text,
    create_engine,
    inspect,
    select,
    text,
)
from sqlalchemy.dialects.mysql import LONGTEXT
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from charwiki.config import Settings

logger = logging.getLogger(__name__)


class DbClient(Protocol):
    """Interface for database access."""

    def get_user(self, username: str) -> Optional["UserRecord"]:
        ...

    def create_user(self, user: "UserRecord") -> "UserRecord":
        ...

    def save_user(self, user: "UserRecord") -> None:
        ...

    def list_users(self) -> list["UserRecord"]:
        ...

    def get_page(self, route: str) -> Optional["PageRecord"]:
        ...

    def save_page(self, route: str, data: Any) -> "PageRecord":
        ...


class DuplicateUsername(Exception):
    """Raised when creating a user whose username is already taken."""


@dataclass
class UserRecord:
    username: str
    password: str
    salt: str
    email: str
    email_salt: str
    register_time: datetime = field(default_factory=datetime.now)
    edit_permission: int = 1
    last_edit_time: Optional[datetime] = None
    edit_count: int = 0
    login_count: int = 0
    reset_password_count: int = 0
    id: Optional[int] = None

    def summary(self) -> dict:
        return {
            "username": self.username,
            "lastEditTime": self.last_edit_time,
            "editCount": self.edit_count,
            "editPermission": self.edit_permission,
            "registerTime": self.register_time,
        }


@dataclass
class PageRecord:
    route: str
    data: Any
    id: Optional[int] = None

    def as_dict(self) -> dict:
        return {"id": self.id, "route": self.route, "data": self.data}


def dump_document(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False)


def load_document(raw: str) -> Any:
    return json.loads(raw)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.pages: Dict[str, tuple[int, str]] = {}
        self._next_user_id = 1
        self._next_page_id = 1

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.pages.clear()
        self._next_user_id = 1
        self._next_page_id = 1

    def get_user(self, username: str) -> Optional[UserRecord]:
        user = self.users.get(username)
        # Hand out copies so callers must save_user() to persist changes.
        return replace(user) if user else None

    def create_user(self, user: UserRecord) -> UserRecord:
        if user.username in self.users:
            raise DuplicateUsername(user.username)
        stored = replace(user, id=self._next_user_id)
        self._next_user_id += 1
        self.users[user.username] = stored
        return replace(stored)

    def save_user(self, user: UserRecord) -> None:
        if user.username not in self.users:
            raise KeyError(user.username)
        self.users[user.username] = replace(user)

    def list_users(self) -> list[UserRecord]:
        return [replace(user) for user in self.users.values()]

    def get_page(self, route: str) -> Optional[PageRecord]:
        stored = self.pages.get(route)
        if stored is None:
            return None
        page_id, raw = stored
        return PageRecord(route=route, data=load_document(raw), id=page_id)

    def save_page(self, route: str, data: Any) -> PageRecord:
        stored = self.pages.get(route)
        if stored is None:
            page_id = self._next_page_id
            self._next_page_id += 1
        else:
            page_id = stored[0]
        # Serialize like the SQL client so both reject the same payloads.
        self.pages[route] = (page_id, dump_document(data))
        return PageRecord(route=route, data=data, id=page_id)


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., MySQL or SQLite for tests).
    """

    def __init__(self, database_url: str | URL, *, create_schema: bool = True):
        if not database_url:
            raise ValueError("a database URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        if create_schema:
            Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            password=row.password,
            salt=row.salt,
            email=row.email,
            email_salt=row.email_salt,
            register_time=row.register_time,
            edit_permission=row.edit_permission,
            last_edit_time=row.last_edit_time,
            edit_count=row.edit_count,
            login_count=row.login_count,
            reset_password_count=row.reset_password_count,
        )

    def get_user(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == username)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_user_record(row)

    def create_user(self, user: UserRecord) -> UserRecord:
        with self.Session() as session:
            stmt = select(UserRow.id).where(UserRow.username == user.username)
            if session.execute(stmt).first():
                raise DuplicateUsername(user.username)
            row = UserRow(
                username=user.username,
                password=user.password,
                salt=user.salt,
                email=user.email,
                email_salt=user.email_salt,
                register_time=user.register_time,
                edit_permission=user.edit_permission,
                last_edit_time=user.last_edit_time,
                edit_count=user.edit_count,
                login_count=user.login_count,
                reset_password_count=user.reset_password_count,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def save_user(self, user: UserRecord) -> None:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == user.username)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                raise KeyError(user.username)
            row.password = user.password
            row.salt = user.salt
            row.email = user.email
            row.email_salt = user.email_salt
            row.edit_permission = user.edit_permission
            row.last_edit_time = user.last_edit_time
            row.edit_count = user.edit_count
            row.login_count = user.login_count
            row.reset_password_count = user.reset_password_count
            session.commit()

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.query(UserRow).order_by(UserRow.id.asc()).all()
            return [self._to_user_record(row) for row in rows]

    def get_page(self, route: str) -> Optional[PageRecord]:
        with self.Session() as session:
            stmt = select(PageRow).where(PageRow.route == route)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return PageRecord(route=row.route, data=load_document(row.data), id=row.id)

    def save_page(self, route: str, data: Any) -> PageRecord:
        with self.Session() as session:
            stmt = select(PageRow).where(PageRow.route == route)
            row = session.execute(stmt).scalar_one_or_none()
            if row:
                row.data = dump_document(data)
            else:
                row = PageRow(route=route, data=dump_document(data))
                session.add(row)
            session.commit()
            session.refresh(row)
            return PageRecord(route=row.route, data=data, id=row.id)


def prepare_database(settings: Settings) -> SqlDbClient:
    """
    Create the database if the server lacks it, then sync the schema once.

    Outside production the tables are created when the database has none;
    production databases are never altered here.
    """
    url = settings.sqlalchemy_url()
    if url.get_backend_name() == "mysql" and url.database:
        server_engine = create_engine(url.set(database=None), future=True)
        try:
            with server_engine.begin() as conn:
                conn.execute(
                    text(
                        f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
                        f"DEFAULT CHARACTER SET {settings.db_charset} "
                        f"COLLATE {settings.db_collation}"
                    )
                )
        finally:
            server_engine.dispose()

    client = SqlDbClient(url, create_schema=False)
    if not settings.is_production:
        if not inspect(client.engine).get_table_names():
            logger.info("No tables found in database, running first schema sync")
            Base.metadata.create_all(client.engine)
    return client


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    salt = Column(String(255), nullable=False)
    email_salt = Column(String(255), nullable=True)
    register_time = Column(DateTime, nullable=False, default=datetime.now)
    edit_permission = Column(SmallInteger, nullable=False, default=1)
    last_edit_time = Column(DateTime, nullable=True)
    edit_count = Column(Integer, nullable=False, default=0)
    login_count = Column(Integer, nullable=False, default=0)
    reset_password_count = Column(Integer, nullable=False, default=0)


class PageRow(Base):
    __tablename__ = "pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    route = Column(String(255), nullable=False, unique=True, index=True)
    # Serialized JSON document
    data = Column(Text().with_variant(LONGTEXT(), "mysql"), nullable=False)
