"""
Credential & token service.

Owns password hashing and the lifecycle of paired access/refresh tokens:
- register / login issue a pair and append the refresh token to the
  account's outstanding set
- refresh rotates: the presented refresh token is removed and the new one
  appended in one store update, so each refresh token works exactly once
- logout removes one refresh token, or all of them

Access tokens are stateless (signature + expiry). Refresh tokens must also be
present in the store. Reused, revoked, expired and forged refresh tokens all
fail the same way with InvalidToken.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, NamedTuple

from sqlalchemy.exc import IntegrityError

from models.account import Account
from models.account_store import AccountStore
from utils.security import (
    ACCESS,
    REFRESH,
    TokenError,
    create_token,
    decode_token,
    generate_jti,
    hash_password,
    make_password_hasher,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base for credential/token failures; carries the HTTP status and a stable code."""
    status = 400
    error = "AUTH_ERROR"
    message = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class DuplicateIdentity(AuthError):
    status = 400
    error = "DUPLICATE_IDENTITY"
    message = "Email already registered"


class InvalidCredentials(AuthError):
    status = 401
    error = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AccountDeactivated(AuthError):
    status = 401
    error = "ACCOUNT_DEACTIVATED"
    message = "Account deactivated"


class MissingToken(AuthError):
    status = 401
    error = "MISSING_TOKEN"
    message = "Refresh token required"


class InvalidToken(AuthError):
    status = 403
    error = "INVALID_TOKEN"
    message = "Invalid refresh token"


class AccountNotFound(AuthError):
    status = 404
    error = "ACCOUNT_NOT_FOUND"
    message = "User not found"


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


class AuthService:
    def __init__(self, store: AccountStore, config: Mapping[str, Any]):
        self.store = store
        # work factor is fixed for the lifetime of the service
        self.hasher = make_password_hasher(config)
        self.access_secret = config["JWT_ACCESS_SECRET"]
        self.refresh_secret = config["JWT_REFRESH_SECRET"]
        if self.access_secret == self.refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        self.algorithm = config.get("JWT_ALGORITHM", "HS256")
        self.issuer = config.get("JWT_ISSUER")
        self.access_expires = config["ACCESS_TOKEN_EXPIRES"]
        self.refresh_expires = config["REFRESH_TOKEN_EXPIRES"]
        # verified against on unknown emails so every login pays one Argon2 verify
        self._dummy_hash = self.hasher.hash(generate_jti())

    # passwords

    def hash_password(self, password: str) -> str:
        return hash_password(self.hasher, password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return verify_password(self.hasher, password, password_hash)

    # tokens

    def issue_token_pair(self, account_id: str) -> TokenPair:
        access = create_token(
            account_id, ACCESS, self.access_secret, self.access_expires, self.algorithm, self.issuer
        )
        refresh = create_token(
            account_id, REFRESH, self.refresh_secret, self.refresh_expires, self.algorithm, self.issuer
        )
        return TokenPair(access, refresh)

    def verify_access_token(self, token: str) -> dict:
        """Claims of a valid access token; raises TokenError otherwise."""
        return decode_token(token, self.access_secret, ACCESS, self.algorithm, self.issuer)

    def verify_refresh_token(self, token: str) -> dict:
        return decode_token(token, self.refresh_secret, REFRESH, self.algorithm, self.issuer)

    def _start_session(self, account: Account) -> TokenPair:
        pair = self.issue_token_pair(account.id)
        self.store.update_refresh_tokens(account.id, add=pair.refresh_token)
        return pair

    # operations

    def register(self, username: str, email: str, password: str,
                 first_name: str, last_name: str) -> tuple[Account, TokenPair]:
        taken = self.store.exists_by_username_or_email(username, email)
        if taken == "email":
            raise DuplicateIdentity("Email already registered")
        if taken == "username":
            raise DuplicateIdentity("Username already taken")

        account = Account(
            username=username,
            email=email.strip().lower(),
            password_hash=self.hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role="user",
            is_active=True,
        )
        try:
            self.store.create(account)
        except IntegrityError:
            # lost a race with a concurrent registration of the same identity
            taken = self.store.exists_by_username_or_email(username, email)
            raise DuplicateIdentity(
                "Username already taken" if taken == "username" else "Email already registered"
            ) from None
        pair = self._start_session(account)
        logger.info("New user registered: %s", account.email)
        return account, pair

    def login(self, email: str, password: str) -> tuple[Account, TokenPair]:
        account = self.store.find_by_email(email, with_credentials=True)
        if account is None:
            self.verify_password(password, self._dummy_hash)
            raise InvalidCredentials()
        if not self.verify_password(password, account.password_hash):
            raise InvalidCredentials()
        if not account.is_active:
            raise AccountDeactivated()

        if self.hasher.check_needs_rehash(account.password_hash):
            self.store.set_password_hash(account, self.hash_password(password))

        pair = self._start_session(account)
        logger.info("User logged in: %s", account.email)
        return account, pair

    def refresh(self, refresh_token: str | None) -> TokenPair:
        if not refresh_token:
            raise MissingToken()
        try:
            claims = self.verify_refresh_token(refresh_token)
        except TokenError as exc:
            logger.warning("Rejected refresh token: %s", exc)
            raise InvalidToken() from None

        account = self.store.find_by_id(claims["sub"])
        if account is None or not account.is_active:
            logger.warning("Rejected refresh token for unknown or inactive account %s", claims["sub"])
            raise InvalidToken()

        account_id = account.id
        pair = self.issue_token_pair(account_id)
        rotated = self.store.update_refresh_tokens(
            account_id, remove=refresh_token, add=pair.refresh_token
        )
        if not rotated:
            logger.warning("Rejected refresh token not outstanding for account %s", account_id)
            raise InvalidToken()
        return pair

    def logout(self, account_id: str, refresh_token: str | None = None) -> None:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        if refresh_token:
            self.store.update_refresh_tokens(account.id, remove=refresh_token)
        else:
            self.store.update_refresh_tokens(account.id, clear=True)
        logger.info("User logged out: %s (%s)", account.email, "one session" if refresh_token else "all sessions")

    def change_password(self, account_id: str, current_password: str, new_password: str) -> None:
        """Replace the password and revoke every outstanding refresh token."""
        account = self.store.find_by_id(account_id, with_credentials=True)
        if account is None:
            raise AccountNotFound()
        if not self.verify_password(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        self.store.set_password_hash(account, self.hash_password(new_password), revoke_sessions=True)
        logger.info("Password changed for %s; all sessions revoked", account.email)

    def set_active(self, account_id: str, is_active: bool) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        self.store.set_active(account, is_active)
        logger.info("User %s %s", account.email, "activated" if is_active else "deactivated")
        return account

    def prune_expired_tokens(self) -> int:
        return self.store.prune_expired_tokens()
