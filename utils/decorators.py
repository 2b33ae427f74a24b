from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from services.auth_service import AuthService, AccountNotFound
from utils.security import TokenError


def get_auth_service() -> AuthService:
    return current_app.extensions["auth_service"]


def current_account():
    """
    Account behind the verified access token of this request.
    Raises AccountNotFound when it was deleted after the token was issued.
    """
    if getattr(g, "current_account", None) is None:
        account = get_auth_service().store.find_by_id(getattr(g, "current_account_id", None))
        if account is None:
            raise AccountNotFound()
        g.current_account = account
    return g.current_account


def jwt_required():
    """
    Verify the bearer access token (signature, expiry, type) before the view
    runs. The account itself is only loaded on demand via current_account().
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            try:
                decoded = get_auth_service().verify_access_token(token)
            except TokenError:
                abort(401, description="Invalid or expired access token")

            g.current_account_id = decoded["sub"]
            g.current_account = None
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the account's role is one of required_roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            account = get_auth_service().store.find_by_id(g.current_account_id)
            if account is None:
                abort(401, description="Unauthorized")
            if account.role not in req:
                abort(403, description="Insufficient role")
            g.current_account = account
            return fn(*args, **kwargs)

        return wrapper

    return decorator
