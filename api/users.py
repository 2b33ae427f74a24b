from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.account import (
    AccountOutSchema,
    AccountStatusSchema,
    PasswordChangeSchema,
    ProfileUpdateSchema,
)
from utils.decorators import jwt_required, roles_required, current_account, get_auth_service

bp = Blueprint("users", __name__, url_prefix="/users")

account_out_schema = AccountOutSchema()
profile_update_schema = ProfileUpdateSchema()
password_change_schema = PasswordChangeSchema()
account_status_schema = AccountStatusSchema()


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      404:
        description: User not found
    """
    return jsonify({"user": account_out_schema.dump(current_account())}), 200


@bp.patch("/me")
@jwt_required()
def update_me():
    """
    Update own profile (firstName, lastName, profileImage)
    ---
    tags:
      - Users
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
             firstName: { type: string }
             lastName: { type: string }
             profileImage: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = profile_update_schema.load(payload)
    account = current_account()
    get_auth_service().store.update_profile(account, **data)
    return jsonify(
        {
            "message": "Profile updated successfully",
            "user": account_out_schema.dump(account),
        }
    ), 200


@bp.post("/me/password")
@jwt_required()
def change_password():
    """
    Change own password; signs out every session
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [currentPassword, newPassword]
           properties:
             currentPassword: { type: string }
             newPassword: { type: string }
    responses:
      200:
        description: Password changed
      401:
        description: Current password is incorrect
    """
    payload = request.get_json(silent=True) or {}
    data = password_change_schema.load(payload)
    get_auth_service().change_password(g.current_account_id, data["current_password"], data["new_password"])
    return jsonify({"message": "Password changed successfully"}), 200


@bp.put("/<account_id>/status")
@roles_required(["admin"])
def set_status(account_id: str):
    """
    Admin-only: activate or deactivate an account.
    Deactivating revokes all of its refresh tokens.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: account_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           required: [isActive]
           properties:
             isActive: { type: boolean }
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
      404: { description: User not found }
    """
    payload = request.get_json(silent=True) or {}
    data = account_status_schema.load(payload)
    account = get_auth_service().set_active(account_id, data["is_active"])
    state = "activated" if account.is_active else "deactivated"
    return jsonify(
        {
            "message": f"User {state} successfully",
            "user": account_out_schema.dump(account),
        }
    ), 200
