"""
Account workflows: registration, login, password reset and the admin roster.
"""

from __future__ import annotations

import hmac
import logging

from charwiki import hashing
from charwiki.config import Settings
from charwiki.db import DbClient, DuplicateUsername, UserRecord
from charwiki.results import Messages, Outcome, ServiceResult
from charwiki.tokens import issue_token

logger = logging.getLogger(__name__)


def _matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


class UserService:
    def __init__(self, db: DbClient, settings: Settings):
        self.db = db
        self.settings = settings

    def _salt(self) -> str:
        return hashing.gen_salt(self.settings.bcrypt_rounds)

    def register(self, username: str, password: str, email: str) -> ServiceResult:
        if self.db.get_user(username):
            return ServiceResult.failure(Outcome.CONFLICT, Messages.USERNAME_TAKEN)

        salt = self._salt()
        email_salt = self._salt()
        user = UserRecord(
            username=username,
            password=hashing.hash_password(password, salt),
            salt=salt,
            email=hashing.hash_email(email, email_salt),
            email_salt=email_salt,
            edit_permission=self.settings.edit_permission_enabled,
        )
        try:
            self.db.create_user(user)
        except DuplicateUsername:
            # Lost a race with a concurrent registration.
            return ServiceResult.failure(Outcome.CONFLICT, Messages.USERNAME_TAKEN)
        logger.info("Registered user %s", username)
        return ServiceResult.success(Messages.REGISTERED)

    def login(self, username: str, password: str) -> ServiceResult:
        """
        Checks the password and issues a bearer token.

        Every attempt for an existing user bumps ``login_count``, whether or
        not the password matches.
        """
        user = self.db.get_user(username)
        if not user:
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.USERNAME_UNKNOWN)

        matched = hashing.compare_password(password, user.password)
        user.login_count += 1
        self.db.save_user(user)

        if not matched:
            logger.warning("Failed login for %s (attempt %d)", username, user.login_count)
            return ServiceResult.failure(
                Outcome.INVALID_CREDENTIALS, Messages.WRONG_PASSWORD
            )

        return ServiceResult.success(
            Messages.LOGGED_IN,
            username=user.username,
            authorization=issue_token(user.username, self.settings),
            loginCount=user.login_count,
            editPermission=user.edit_permission,
        )

    def reset_password(self, username: str, email: str, password: str) -> ServiceResult:
        user = self.db.get_user(username)
        if not user:
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.USER_NOT_FOUND)

        user.reset_password_count += 1
        if not hashing.compare_email(email, user.email, user.email_salt):
            self.db.save_user(user)
            logger.warning("Password reset for %s rejected: email mismatch", username)
            return ServiceResult.failure(Outcome.INVALID_CREDENTIALS, Messages.WRONG_EMAIL)

        user.salt = self._salt()
        user.password = hashing.hash_password(password, user.salt)
        self.db.save_user(user)
        logger.info("Password reset for %s", username)
        return ServiceResult.success(Messages.PASSWORD_RESET)

    def admin_login(self, username: str, password: str) -> ServiceResult:
        """
        Logs the operator in and returns every user's edit activity.

        The operator identity lives in settings and is compared in plaintext;
        it must also exist as a registered user.
        """
        if not _matches(username, self.settings.admin_username):
            return ServiceResult.failure(
                Outcome.INVALID_CREDENTIALS, Messages.ADMIN_WRONG_USERNAME
            )
        if not _matches(password, self.settings.admin_password):
            return ServiceResult.failure(
                Outcome.INVALID_CREDENTIALS, Messages.ADMIN_WRONG_PASSWORD
            )
        if not self.db.get_user(self.settings.admin_username):
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.ADMIN_USER_MISSING)

        roster = [user.summary() for user in self.db.list_users()]
        return ServiceResult.success(Messages.ADMIN_LOGGED_IN, data=roster)

    def update_user_permission(self, username: str, edit_permission: int) -> ServiceResult:
        user = self.db.get_user(username)
        if not user:
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.USER_NOT_FOUND)

        user.edit_permission = edit_permission
        self.db.save_user(user)
        enabled = edit_permission == self.settings.edit_permission_enabled
        logger.info("Edit permission for %s set to %d", username, edit_permission)
        return ServiceResult.success(Messages.permission_changed(username, enabled))

    def get_user_info(self, username: str) -> ServiceResult:
        if not self.db.get_user(username):
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.USER_NOT_FOUND)
        return ServiceResult.success(Messages.USER_INFO_OK)
