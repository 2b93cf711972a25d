"""Unit tests for the error taxonomy and its HTTP mapping."""

import pytest

from halaqa.exceptions import (
    AlreadyCompletedError,
    AuthenticationError,
    AuthorizationError,
    InvalidTransitionError,
    LimitExceededError,
    NotFoundError,
    StaleStateError,
    ValidationError,
    error_envelope,
    http_status_for,
)


@pytest.mark.parametrize(
    "error, status_code, code",
    [
        (ValidationError("bad"), 400, "VALIDATION_ERROR"),
        (AuthenticationError(), 401, "UNAUTHORIZED"),
        (AuthorizationError("view", "assignment"), 403, "FORBIDDEN"),
        (NotFoundError("assignment"), 404, "NOT_FOUND"),
        (InvalidTransitionError("assigned", "complete"), 400, "INVALID_TRANSITION"),
        (AlreadyCompletedError("homework"), 400, "ALREADY_COMPLETED"),
        (LimitExceededError("reopen count", 10), 400, "LIMIT_EXCEEDED"),
        (StaleStateError("assignment", "viewed", "submitted"), 409, "STALE_STATE"),
    ],
)
def test_status_and_code(error, status_code, code):
    assert http_status_for(error) == status_code
    assert error.code == code


def test_authorization_and_transition_errors_are_distinct():
    assert not issubclass(AuthorizationError, InvalidTransitionError)
    assert not issubclass(InvalidTransitionError, AuthorizationError)


def test_messages():
    assert NotFoundError("target").message == "Target not found"
    assert "Maximum reopen count (10) exceeded" == LimitExceededError("reopen count", 10).message
    stale = StaleStateError("assignment", "viewed", "submitted")
    assert "expected 'viewed'" in stale.message
    assert "found 'submitted'" in stale.message


def test_envelope():
    assert error_envelope("nope", "FORBIDDEN") == {
        "success": False,
        "error": "nope",
        "code": "FORBIDDEN",
    }
    assert error_envelope("bad", "VALIDATION_ERROR", {"errors": ["x"]})["details"] == {
        "errors": ["x"]
    }
