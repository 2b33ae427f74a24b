from marshmallow import Schema, fields, pre_load, validate, validates, ValidationError


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(data, *keys):
    for key in keys:
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


class RegisterSchema(Schema):
    username = fields.String(required=True, validate=validate.Length(min=3, max=30))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    first_name = fields.String(required=True, data_key="firstName", validate=validate.Length(min=1, max=50))
    last_name = fields.String(required=True, data_key="lastName", validate=validate.Length(min=1, max=50))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            _strip(data, "username", "firstName", "lastName")
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 6:
            raise ValidationError("Password must be at least 6 characters long.")


class LoginSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data


class RefreshSchema(Schema):
    # presence is checked by the service so a missing token maps to its own error
    refresh_token = fields.String(load_default=None, allow_none=True, data_key="refreshToken")


class LogoutSchema(Schema):
    refresh_token = fields.String(load_default=None, allow_none=True, data_key="refreshToken")


class ProfileUpdateSchema(Schema):
    first_name = fields.String(data_key="firstName", validate=validate.Length(min=1, max=50))
    last_name = fields.String(data_key="lastName", validate=validate.Length(min=1, max=50))
    profile_image = fields.Url(allow_none=True, data_key="profileImage")

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = _strip(dict(data), "firstName", "lastName")
        return data


class PasswordChangeSchema(Schema):
    current_password = fields.String(required=True, load_only=True, data_key="currentPassword")
    new_password = fields.String(required=True, load_only=True, data_key="newPassword")

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        if len(value) < 6:
            raise ValidationError("Password must be at least 6 characters long.")


class AccountStatusSchema(Schema):
    is_active = fields.Boolean(required=True, data_key="isActive")


class AccountOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    first_name = fields.String(data_key="firstName")
    last_name = fields.String(data_key="lastName")
    profile_image = fields.String(allow_none=True, data_key="profileImage")
    role = fields.String()
    is_active = fields.Boolean(data_key="isActive")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class TokenPairSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
