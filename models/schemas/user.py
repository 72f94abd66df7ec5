from marshmallow import Schema, fields, validate, EXCLUDE


class CredentialsSchema(Schema):
    """Registration body: both fields present and non-empty."""
    class Meta:
        unknown = EXCLUDE

    username = fields.String(required=True, validate=validate.Length(min=1, max=255))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class UserLoginSchema(Schema):
    # Missing fields are not a validation error here: login answers 401 for them
    class Meta:
        unknown = EXCLUDE

    username = fields.String()
    password = fields.String()


class TokenPairSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    token_type = fields.String(data_key="tokenType", dump_default="bearer")
    expires_in = fields.Integer(data_key="expiresIn")


class ProfileSchema(Schema):
    message = fields.String(dump_default="Profile data")
    user_id = fields.String(data_key="userId")
