from services.auth_service import (
    AuthService,
    TokenPair,
    AuthError,
    DuplicateIdentity,
    InvalidCredentials,
    AccountDeactivated,
    MissingToken,
    InvalidToken,
    AccountNotFound,
)

__all__ = [
    "AuthService",
    "TokenPair",
    "AuthError",
    "DuplicateIdentity",
    "InvalidCredentials",
    "AccountDeactivated",
    "MissingToken",
    "InvalidToken",
    "AccountNotFound",
]
