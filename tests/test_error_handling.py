"""Tests for mapping internal error kinds to public responses."""

import json

import pytest

from sessionbridge.api.error_handling import SERVER_ERROR, PublicError, _error_response, classify
from sessionbridge.service import errors as error_module
from sessionbridge.service.errors import ErrorKind, SessionBridgeError


def _concrete_error_classes():
    return [
        obj
        for obj in vars(error_module).values()
        if isinstance(obj, type)
        and issubclass(obj, SessionBridgeError)
        and obj is not SessionBridgeError
    ]


class TestClassify:
    def test_every_kind_is_classified(self):
        for kind in ErrorKind:
            public = classify(kind)
            assert isinstance(public, PublicError)
            assert 400 <= public.status < 600

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.TOKEN_MALFORMED,
            ErrorKind.TOKEN_EXPIRED,
            ErrorKind.UNEXPECTED_SIGNING_ALGORITHM,
            ErrorKind.WRONG_CLAIMS_SHAPE,
        ],
    )
    def test_token_validation_causes_are_indistinguishable(self, kind):
        assert classify(kind) == PublicError(401, "invalid_token", "Invalid or expired token")

    def test_security_codes_are_distinct(self):
        assert classify(ErrorKind.REFRESH_TOKEN_REVOKED).code == "refresh_token_revoked"
        assert classify(ErrorKind.SESSION_MISMATCH).code == "session_mismatch"
        assert classify(ErrorKind.SESSION_NOT_FOUND).code == "session_not_found"
        for kind in (ErrorKind.REFRESH_TOKEN_REVOKED, ErrorKind.SESSION_MISMATCH, ErrorKind.SESSION_NOT_FOUND):
            assert classify(kind).status == 401

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.MISSING_CREDENTIAL_SOURCE,
            ErrorKind.TOKEN_SIGNING_FAILED,
            ErrorKind.STORE_UNAVAILABLE,
            ErrorKind.ID_GENERATION_FAILED,
        ],
    )
    def test_server_faults_are_generic(self, kind):
        public = classify(kind)
        assert public.status == 500
        assert public.code == "server_error"

    def test_upstream_failure_is_bad_gateway(self):
        assert classify(ErrorKind.UPSTREAM_REQUEST_FAILED).status == 502

    def test_oauth_outage_is_distinct_from_rejected_code(self):
        outage = classify(ErrorKind.OAUTH_REQUEST_FAILED)
        assert outage == PublicError(502, "oauth_error", "OAuth service unavailable")
        assert classify(ErrorKind.EXCHANGE_FAILED).status == 400

    def test_unknown_kind_falls_back_to_server_error(self):
        assert classify("not-a-kind") == SERVER_ERROR

    def test_every_error_class_has_a_kind(self):
        for cls in _concrete_error_classes():
            assert isinstance(cls.kind, ErrorKind)

    def test_internal_message_is_not_public(self):
        exc = error_module.StoreUnavailable("redis ECONNREFUSED 10.0.0.5:6379")
        public = classify(exc.kind)
        assert "10.0.0.5" not in public.message


class TestErrorResponse:
    def test_wire_shape(self):
        resp = _error_response(401, "invalid_token", "Invalid or expired token")
        assert resp.status_code == 401
        assert json.loads(resp.body) == {
            "error": "invalid_token",
            "error_description": "Invalid or expired token",
        }


class TestErrorDefaults:
    def test_default_message_from_kind(self):
        assert error_module.SessionMismatch().message == "session mismatch"

    def test_detail_defaults_to_empty(self):
        assert error_module.InvalidState().detail == {}
