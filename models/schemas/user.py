from marshmallow import Schema, fields, pre_load, validates, validate, ValidationError, RAISE

MIN_PASSWORD_LENGTH = 6
MAX_NICKNAME_LENGTH = 64

MSG_PASSWORD_TOO_SHORT = f"비밀번호는 최소 {MIN_PASSWORD_LENGTH}자 이상이어야 합니다."
MSG_PASSWORD_REQUIRED = "비밀번호를 입력해 주세요."
MSG_NICKNAME_REQUIRED = "닉네임을 입력해 주세요."
MSG_NICKNAME_TOO_LONG = f"닉네임은 최대 {MAX_NICKNAME_LENGTH}자까지 입력할 수 있습니다."


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _CredentialsSchema(Schema):
    class Meta:
        unknown = RAISE

    email = fields.Email(required=True, error_messages={"invalid": "올바른 이메일 형식이 아닙니다."})
    # sign-in only needs something to verify; the length rule belongs to sign-up
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=1, error=MSG_PASSWORD_REQUIRED),
    )

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class SignUpSchema(_CredentialsSchema):
    nickname = fields.String(
        required=True,
        validate=[
            validate.Length(min=1, error=MSG_NICKNAME_REQUIRED),
            validate.Length(max=MAX_NICKNAME_LENGTH, error=MSG_NICKNAME_TOO_LONG),
        ],
    )

    @pre_load
    def strip_nickname(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("nickname"), str):
            data = dict(data)
            data["nickname"] = data["nickname"].strip()
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValidationError(MSG_PASSWORD_TOO_SHORT)


class SignInSchema(_CredentialsSchema):
    pass


class ProfileOutSchema(Schema):
    id = fields.String()
    email = fields.Method("get_email")
    nickname = fields.String()
    bio = fields.String(allow_none=True)
    avatarUrl = fields.String(attribute="avatar_url", allow_none=True)

    def get_email(self, obj):
        credential = getattr(obj, "credential", None)
        return credential.email if credential else None
