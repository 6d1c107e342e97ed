"""
Tests for AuthKit error decoding.
"""

import httpx

from authkit.errors import (
    ApiError,
    AuthKitError,
    RateLimitExceededError,
    ValidationError,
    is_authkit_error,
    is_rate_limit_error,
)


PASSWORD_STRENGTH_ERROR = {
    "name": "PasswordStrengthError",
    "code": "invalid_password",
    "description": {
        "rules": [
            {
                "message": "At least %d characters in length",
                "format": [10],
                "code": "lengthAtLeast",
                "verified": False,
            },
            {
                "message": "Contain at least %d of the following %d types of characters:",
                "format": [3, 4],
                "code": "containsAtLeast",
                "verified": False,
                "items": [
                    {"message": "lower case letters (a-z)", "code": "lowerCase", "verified": True},
                    {"message": "upper case letters (A-Z)", "code": "upperCase", "verified": False},
                    {"message": "numbers (i.e. 0-9)", "code": "numbers", "verified": False},
                    {"message": "special characters (e.g. !@#$%^&*)", "code": "specialCharacters", "verified": True},
                ],
            },
            {
                "message": "No more than %d identical characters in a row (e.g., \"aaa\" not allowed)",
                "format": [2],
                "code": "identicalChars",
                "verified": True,
            },
        ],
        "verified": False,
    },
    "policy": "* At least 10 characters in length",
    "statusCode": 400,
}


class TestApiErrorDecoding:
    """Tests for building ApiError from payloads."""

    def test_error_and_description(self):
        """Test error code and description fields."""
        error = ApiError.from_payload(
            {"error": "invalid_grant", "error_description": "Wrong email or password."}, 403
        )
        assert error.status_code == 403
        assert error.error == "invalid_grant"
        assert error.description == "Wrong email or password."
        assert error.message == "Request failed with status code 403: Wrong email or password."

    def test_code_and_message_fallbacks(self):
        """Test 'code' and 'message' are used when the usual fields are absent."""
        error = ApiError.from_payload({"code": "user_exists", "message": "The user already exists."}, 400)
        assert error.error == "user_exists"
        assert error.description == "The user already exists."

    def test_description_field(self):
        """Test the 'description' field."""
        error = ApiError.from_payload({"code": "x", "description": "Bad things"}, 400)
        assert error.description == "Bad things"

    def test_text_body(self):
        """Test a non-JSON body becomes the description."""
        error = ApiError.from_payload("Gateway exploded", 502)
        assert error.error is None
        assert error.description == "Gateway exploded"
        assert error.values == {}

    def test_values_kept(self):
        """Test the raw payload is available."""
        payload = {"error": "e", "error_description": "d", "extra": 1}
        assert ApiError.from_payload(payload, 400).values["extra"] == 1

    def test_password_strength_description(self):
        """Test unverified rules are assembled into one description."""
        error = ApiError.from_payload(PASSWORD_STRENGTH_ERROR, 400)
        assert error.error == "invalid_password"
        assert error.description == (
            "At least 10 characters in length; "
            "Contain at least 3 of the following 4 types of characters: "
            "lower case letters (a-z), upper case letters (A-Z), numbers (i.e. 0-9), "
            "special characters (e.g. !@#$%^&*)"
        )

    def test_password_strength_single_rule(self):
        """Test one unverified rule without items."""
        payload = {
            "code": "invalid_password",
            "description": {
                "rules": [
                    {"message": "Non-empty password required", "code": "nonEmpty", "verified": False},
                ],
                "verified": False,
            },
        }
        assert ApiError.from_payload(payload, 400).description == "Non-empty password required"

    def test_password_strength_malformed_entries_skipped(self):
        """Test rules and items that are not objects are ignored."""
        payload = {
            "code": "invalid_password",
            "description": {
                "rules": [
                    "oops",
                    None,
                    {
                        "message": "Contain at least %d of the following types:",
                        "format": [2],
                        "verified": False,
                        "items": ["bad", {"message": "numbers (i.e. 0-9)"}, 7],
                    },
                    {"message": "At least %d characters", "format": [8], "items": "nope"},
                ],
            },
        }
        error = ApiError.from_payload(payload, 400)
        assert error.error == "invalid_password"
        assert error.description == (
            "Contain at least 2 of the following types: numbers (i.e. 0-9); "
            "At least 8 characters"
        )


class TestRateLimitError:
    """Tests for rate limit errors."""

    def test_headers_parsed(self):
        """Test X-RateLimit-* headers are read."""
        headers = httpx.Headers({
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1700000000",
        })
        error = RateLimitExceededError.from_response_parts(
            {"error": "too_many_requests", "message": "Global limit has been reached"}, headers
        )
        assert error.status_code == 429
        assert error.limit == 10
        assert error.remaining == 0
        assert error.reset == 1700000000
        assert error.description == "Global limit has been reached"
        assert isinstance(error, ApiError)

    def test_missing_headers(self):
        """Test absent headers default to -1."""
        error = RateLimitExceededError.from_response_parts(None, httpx.Headers())
        assert (error.limit, error.remaining, error.reset) == (-1, -1, -1)


class TestHelpers:
    """Tests for error helpers."""

    def test_to_dict(self):
        """Test error serialization."""
        data = ValidationError("'email' is required", "email").to_dict()
        assert data["name"] == "ValidationError"
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"] == {"field": "email"}
        assert data["timestamp"].endswith("Z")

    def test_predicates(self):
        """Test is_authkit_error and is_rate_limit_error."""
        assert is_authkit_error(AuthKitError("X", "x"))
        assert not is_authkit_error(ValueError("x"))
        assert is_rate_limit_error(RateLimitExceededError())
        assert not is_rate_limit_error(ApiError(500))
