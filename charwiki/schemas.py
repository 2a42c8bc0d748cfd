"""
Pydantic schemas for the character wiki HTTP API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    message: str
    port: int
    time: str


class MessageResponse(BaseModel):
    message: str


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    message: str
    username: Optional[str] = None
    authorization: Optional[str] = None
    loginCount: Optional[int] = None
    editPermission: Optional[int] = None


class ResetPasswordRequest(BaseModel):
    username: str
    email: str
    password: str = Field(..., min_length=1)


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class UserSummary(BaseModel):
    username: str
    lastEditTime: Optional[datetime] = None
    editCount: int
    editPermission: int
    registerTime: datetime


class AdminLoginResponse(BaseModel):
    message: str
    data: Optional[list[UserSummary]] = None


class PermissionUpdateRequest(BaseModel):
    username: str
    editPermission: int


class PageResponse(BaseModel):
    id: Optional[int] = None
    route: Optional[str] = None
    data: Any = Field(default_factory=list)
