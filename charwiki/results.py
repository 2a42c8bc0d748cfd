"""
Service outcomes and the client-facing message catalogue.

Domain failures (unknown user, duplicate username, missing permission, wrong
credentials) are not raised. Services return a ServiceResult and the HTTP
layer renders it as a 200 response with a ``message`` field. The message
strings are the ones existing clients already match on, so they are kept
verbatim.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class Outcome(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    VALIDATION_ERROR = "validation_error"


class Messages:
    SERVER_RUNNING = "服务器已运行"

    REGISTERED = "注册成功"
    USERNAME_TAKEN = "用户名已存在"

    LOGGED_IN = "登录成功"
    USERNAME_UNKNOWN = "用户名不存在"
    WRONG_PASSWORD = "密码错误"

    USER_NOT_FOUND = "用户不存在"
    WRONG_EMAIL = "邮箱错误"
    PASSWORD_RESET = "密码重置成功"

    ADMIN_WRONG_USERNAME = "超级用户账号错误"
    ADMIN_WRONG_PASSWORD = "超级用户密码错误"
    ADMIN_USER_MISSING = "管理员用户不存在"
    ADMIN_LOGGED_IN = "超级用户登录成功"

    USER_INFO_OK = "获取用户信息成功"

    PERMISSION_ENABLED = "启用"
    PERMISSION_DISABLED = "禁用"

    NOT_LOGGED_IN = "用户未登录，无法编辑"
    NO_EDIT_PERMISSION = "您没有编辑权限"
    DOCUMENT_SAVED = "数据保存成功"
    FILES_UPLOADED = "文件上传成功"
    MISSING_ROUTE = "缺少 route 参数"
    INVALID_DATA_JSON = "data 参数格式错误，必须是有效的 JSON 字符串"
    INVALID_DOCUMENT = "data 参数结构错误"

    TOO_MANY_FILES = "上传文件数量超出限制"
    FILE_TOO_LARGE = "上传文件大小超出限制"
    UNAUTHORIZED = "Unauthorized"

    @staticmethod
    def permission_changed(username: str, enabled: bool) -> str:
        status = Messages.PERMISSION_ENABLED if enabled else Messages.PERMISSION_DISABLED
        return f"用户 {username} 编辑权限已{status}"


@dataclass
class ServiceResult:
    outcome: Outcome
    message: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @classmethod
    def success(cls, message: str, **payload: Any) -> "ServiceResult":
        return cls(Outcome.OK, message, payload)

    @classmethod
    def failure(cls, outcome: Outcome, message: str) -> "ServiceResult":
        return cls(outcome, message)

    def as_response(self) -> dict[str, Any]:
        return {"message": self.message, **self.payload}
