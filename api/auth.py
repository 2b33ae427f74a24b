"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout

Views only validate the body and shape the response; the token lifecycle
lives in services.auth_service.AuthService.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.account import (
    RegisterSchema,
    LoginSchema,
    RefreshSchema,
    LogoutSchema,
    AccountOutSchema,
    TokenPairSchema,
)
from utils.decorators import jwt_required, get_auth_service

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
account_out_schema = AccountOutSchema()
token_pair_schema = TokenPairSchema()


def _session_payload(message, account, pair):
    return {"message": message, "user": account_out_schema.dump(account), **token_pair_schema.dump(pair._asdict())}


@bp.post("/register")
def register():
    """
    Register a new account and open a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [username, email, password, firstName, lastName]
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            firstName: { type: string }
            lastName: { type: string }
    responses:
      201:
        description: Created (returns user, accessToken, refreshToken)
      400:
        description: Validation error or email/username already taken
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)
    account, pair = get_auth_service().register(
        data["username"], data["email"], data["password"], data["first_name"], data["last_name"]
    )
    return jsonify(_session_payload("User registered successfully", account, pair)), 201


@bp.post("/login")
def login():
    """
    Login: return user, accessToken and refreshToken
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials or account deactivated
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)
    account, pair = get_auth_service().login(data["email"], data["password"])
    return jsonify(_session_payload("Login successful", account, pair)), 200


@bp.post("/refresh")
def refresh():
    """
    Rotate a refresh token into a new token pair. Each refresh token works once.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns accessToken, refreshToken)
      401:
        description: Refresh token missing
      403:
        description: Invalid refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)
    pair = get_auth_service().refresh(data["refresh_token"])
    return jsonify(token_pair_schema.dump(pair._asdict())), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revoke one refresh token, or every one when none is given
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
      404:
        description: User not found
    """
    payload = request.get_json(silent=True) or {}
    data = logout_schema.load(payload)
    get_auth_service().logout(g.current_account_id, data["refresh_token"])
    return jsonify({"message": "Logged out successfully"}), 200
