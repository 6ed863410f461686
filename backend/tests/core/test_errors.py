"""Error Hierarchy — tests for HTTP status mapping and the REST error envelope.

Tests cover:
    - Each error class maps to its category and HTTP status
    - InsufficientBalance / InvalidTransition / CompletionGate are guard violations
    - to_response() envelope shape and context propagation
    - transient flag only for database and conflict categories
"""

import pytest

from skillloop.core.errors import (
    AuthorizationError, CompletionGateError, ConcurrencyError, DatabaseError,
    ErrorCategory, ErrorContext, GuardViolationError, HTTP_STATUS_BY_CATEGORY,
    InsufficientBalanceError, InvalidTransitionError, MintingError,
    ResourceNotFoundError, SkillLoopError, ValidationError,
)


@pytest.mark.parametrize("error, status, category", [
    (ValidationError("bad", "field"), 400, ErrorCategory.VALIDATION),
    (AuthorizationError("approve this session"), 403, ErrorCategory.UNAUTHORIZED),
    (ResourceNotFoundError("Session", "x"), 404, ErrorCategory.RESOURCE_NOT_FOUND),
    (GuardViolationError("nope"), 409, ErrorCategory.GUARD_VIOLATION),
    (ConcurrencyError("raced"), 409, ErrorCategory.CONFLICT),
    (DatabaseError("down", "execute"), 503, ErrorCategory.DATABASE),
    (MintingError("rpc timeout"), 502, ErrorCategory.EXTERNAL_API),
])
def test_status_and_category(error, status, category):
    assert isinstance(error, SkillLoopError)
    assert error.http_status == status
    assert error.category is category


@pytest.mark.parametrize("error", [
    InsufficientBalanceError(5, 10),
    InvalidTransitionError("start", "completed"),
    CompletionGateError("Attendance verification is required."),
])
def test_specific_guard_failures_are_guard_violations(error):
    assert isinstance(error, GuardViolationError)
    assert error.http_status == 409


def test_insufficient_balance_message():
    error = InsufficientBalanceError(5, 10.5)
    assert error.code == "INSUFFICIENT_BALANCE"
    assert error.message == "Insufficient SKL tokens. You have 5 SKL but need 10.5 SKL"


def test_to_response_envelope():
    context = ErrorContext(session_id="s-1", bid_id="b-1")
    body = GuardViolationError("Bid is no longer pending", "BID_NOT_PENDING", context).to_response()
    error = body["error"]
    assert error["code"] == "BID_NOT_PENDING"
    assert error["message"] == "Bid is no longer pending"
    assert error["category"] == "guard_violation"
    assert error["severity"] == "error"
    assert error["context"]["session_id"] == "s-1"
    assert error["context"]["bid_id"] == "b-1"


def test_transient_only_for_retryable_categories():
    assert ConcurrencyError("raced").transient is True
    assert DatabaseError("down", "commit").transient is True
    assert GuardViolationError("nope").transient is False
    assert ValidationError("bad").transient is False


def test_every_category_has_a_status():
    assert set(HTTP_STATUS_BY_CATEGORY) == set(ErrorCategory)


def test_guard_code_override_keeps_class_default_intact():
    assert GuardViolationError("Bid is no longer pending", "BID_NOT_PENDING").code == "BID_NOT_PENDING"
    assert GuardViolationError("nope").code == "GUARD_VIOLATION"
    assert InsufficientBalanceError(1, 2).code == "INSUFFICIENT_BALANCE"
