"""Domain Types — tests for address normalization and status enums."""

from skillloop.core.domain_types import (
    TERMINAL_SESSION_STATES, SessionStatus, normalize_address,
)


def test_normalize_address_lowercases_and_strips():
    assert normalize_address("  0xABCDEF0123456789abcdef0123456789ABCDEF01 ") == (
        "0xabcdef0123456789abcdef0123456789abcdef01"
    )


def test_terminal_states():
    assert TERMINAL_SESSION_STATES == {
        SessionStatus.COMPLETED, SessionStatus.CANCELED, SessionStatus.REJECTED,
    }
    assert not SessionStatus.IN_PROGRESS.is_terminal


def test_status_values_match_stored_strings():
    assert SessionStatus.IN_PROGRESS.value == "in-progress"
    assert SessionStatus("in-progress") is SessionStatus.IN_PROGRESS
