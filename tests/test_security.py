import jwt
import pytest

from tests.conftest import ACCESS_SECRET, REFRESH_SECRET, make_token
from utils.exceptions import InternalError, TokenExpiredError, TokenInvalidError
from utils.security import (
    ACCESS,
    REFRESH,
    PasswordVerifier,
    TokenCodec,
    build_codecs,
    parse_expiration,
)


class TestParseExpiration:
    @pytest.mark.parametrize(
        "value,seconds",
        [("30s", 30), ("15m", 900), ("1h", 3600), ("7d", 604800)],
    )
    def test_units(self, value, seconds):
        assert parse_expiration(value) == seconds

    @pytest.mark.parametrize("value", ["", "15", "m15", "1w", "1.5h", None])
    def test_malformed_is_internal_error(self, value):
        with pytest.raises(InternalError):
            parse_expiration(value)

    def test_bad_ttl_in_config_fails_codec_build(self):
        with pytest.raises(InternalError):
            build_codecs({"JWT_SECRET": "a", "REFRESH_TOKEN_SECRET": "b", "JWT_EXPIRATION": "soon"})


class TestTokenCodec:
    @pytest.fixture
    def access(self):
        return TokenCodec(ACCESS_SECRET, 900, ACCESS)

    @pytest.fixture
    def refresh(self):
        return TokenCodec(REFRESH_SECRET, 604800, REFRESH)

    def test_round_trip_claims(self, access):
        claims = access.decode(access.encode("user-1", "u@x.com"))
        assert claims.subject == "user-1"
        assert claims.email == "u@x.com"
        assert claims.jti

    def test_every_token_is_unique(self, refresh):
        assert refresh.encode("user-1", "u@x.com") != refresh.encode("user-1", "u@x.com")

    def test_expired_token_is_distinguished(self, access):
        with pytest.raises(TokenExpiredError):
            access.decode(make_token(expired=True))

    def test_bad_signature_is_invalid(self, access):
        with pytest.raises(TokenInvalidError):
            access.decode(make_token(secret="someone-else"))

    def test_expired_with_bad_signature_is_invalid_not_expired(self, access):
        token = make_token(secret="someone-else", expired=True)
        with pytest.raises(TokenInvalidError):
            access.decode(token)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_is_invalid(self, access, token):
        with pytest.raises(TokenInvalidError):
            access.decode(token)

    def test_refresh_token_rejected_by_access_codec(self, access, refresh):
        with pytest.raises(TokenInvalidError):
            access.decode(refresh.encode("user-1", "u@x.com"))

    def test_wrong_type_with_shared_secret_is_invalid(self):
        shared_access = TokenCodec("shared", 900, ACCESS)
        shared_refresh = TokenCodec("shared", 900, REFRESH)
        with pytest.raises(TokenInvalidError):
            shared_access.decode(shared_refresh.encode("user-1", "u@x.com"))

    def test_token_carries_type_and_issuer(self, refresh):
        payload = jwt.decode(refresh.encode("user-1", "u@x.com"), options={"verify_signature": False})
        assert payload["type"] == "refresh"
        assert payload["iss"] == "session-service"
        assert payload["exp"] - payload["iat"] == 604800

    def test_missing_secret_is_internal_error(self):
        with pytest.raises(InternalError):
            TokenCodec("", 900, ACCESS)


class TestPasswordVerifier:
    @pytest.fixture
    def verifier(self):
        return PasswordVerifier(time_cost=1, memory_cost=8)

    def test_hash_is_not_plaintext_and_salted(self, verifier):
        first = verifier.hash("123456")
        assert first != "123456"
        assert first != verifier.hash("123456")

    def test_verify(self, verifier):
        digest = verifier.hash("123456")
        assert verifier.verify("123456", digest) is True
        assert verifier.verify("wrong", digest) is False

    def test_missing_or_garbage_hash_never_matches(self, verifier):
        assert verifier.verify("123456", None) is False
        assert verifier.verify("123456", "not-a-hash") is False

    def test_burn_does_not_raise(self, verifier):
        verifier.burn("anything")
