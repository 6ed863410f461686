"""Bid & Pricing Enforcement — tests for the pure bidding guards.

Tests cover:
    - compute_total_cost pricing formula and rounding
    - hourly rate bounds for direct booking
    - each submission guard in isolation, then the chained validator
    - check_bid_pending for every non-pending status
"""

import pytest

from skillloop.core.domain_types import BidStatus, RequestStatus, WalletAddress
from skillloop.core.enforce_bidding import (
    check_bid_pending,
    check_hourly_rate,
    check_no_pending_bid,
    check_not_own_request,
    check_request_open,
    check_within_budget,
    compute_total_cost,
    validate_bid_submission,
)

OWNER = WalletAddress("0xowner")
TUTOR = WalletAddress("0xtutor")


# ─── Pricing ─────────────────────────────────────────────────────

def test_total_cost_is_rate_times_hours():
    assert compute_total_cost(10, 60) == 10
    assert compute_total_cost(12, 45) == 9
    assert compute_total_cost(20, 90) == 30


def test_total_cost_rounds_to_two_decimals():
    assert compute_total_cost(7, 50) == 5.83


@pytest.mark.parametrize("rate", [5, 12.5, 20])
def test_hourly_rate_within_bounds(rate):
    assert check_hourly_rate(rate) is None


@pytest.mark.parametrize("rate", [4.99, 20.01, 0])
def test_hourly_rate_out_of_bounds(rate):
    error = check_hourly_rate(rate)
    assert error["error_code"] == "RATE_OUT_OF_RANGE"


# ─── Submission guards ───────────────────────────────────────────

@pytest.mark.parametrize("status", [RequestStatus.IN_PROGRESS, RequestStatus.CLOSED])
def test_request_must_be_open(status):
    assert check_request_open(status)["error_code"] == "REQUEST_NOT_OPEN"


def test_owner_cannot_bid_on_own_request():
    assert check_not_own_request(OWNER, OWNER)["error_code"] == "OWN_REQUEST"
    assert check_not_own_request(OWNER, TUTOR) is None


def test_budget_inclusive_upper_bound():
    assert check_within_budget(15, 15) is None
    error = check_within_budget(15.01, 15)
    assert error["error_code"] == "OVER_BUDGET"
    assert "15.01 SKL" in error["message"]


def test_sub_cent_overrun_is_over_budget():
    # 10.004 SKL/h for an hour rounds to 10.00 but still exceeds a 10 SKL budget
    assert compute_total_cost(10.004, 60) == 10
    error = check_within_budget(10.004 * 60 / 60, 10)
    assert error["error_code"] == "OVER_BUDGET"


def test_tutor_with_pending_bid_cannot_bid_again():
    existing = [(TUTOR, BidStatus.PENDING)]
    assert check_no_pending_bid(existing, TUTOR)["error_code"] == "DUPLICATE_PENDING_BID"


def test_tutor_may_rebid_after_rejection_or_withdrawal():
    existing = [(TUTOR, BidStatus.REJECTED), (TUTOR, BidStatus.WITHDRAWN)]
    assert check_no_pending_bid(existing, TUTOR) is None


def test_other_tutors_pending_bids_do_not_block():
    existing = [(WalletAddress("0xother"), BidStatus.PENDING)]
    assert check_no_pending_bid(existing, TUTOR) is None


@pytest.mark.parametrize("status", [
    BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN,
])
def test_resolved_bid_is_not_pending(status):
    assert check_bid_pending(status)["error_code"] == "BID_NOT_PENDING"


# ─── validate_bid_submission ─────────────────────────────────────

def test_valid_submission_passes():
    assert validate_bid_submission(
        RequestStatus.OPEN, OWNER, TUTOR, 9, 15, [],
    ) is None


def test_closed_request_reported_before_budget():
    error = validate_bid_submission(
        RequestStatus.CLOSED, OWNER, TUTOR, 100, 15, [(TUTOR, BidStatus.PENDING)],
    )
    assert error["error_code"] == "REQUEST_NOT_OPEN"


def test_over_budget_reported_before_duplicate():
    error = validate_bid_submission(
        RequestStatus.OPEN, OWNER, TUTOR, 100, 15, [(TUTOR, BidStatus.PENDING)],
    )
    assert error["error_code"] == "OVER_BUDGET"
