"""Bid & Pricing Enforcement — pure guards for learning-request bidding and direct booking.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return error dict on violation, None on success
    - total_cost = rate * duration / 60, rounded to 2 decimals, is the ONLY pricing formula
    - The budget guard compares the unrounded price; rounding applies only to the charge
    - A tutor holds at most one pending bid per request
    - validate_bid_submission chains all checks — first error wins

Design Decisions:
    - Error dicts (not exceptions) keep the guard layer IO-free and uniform;
      services raise GuardViolationError(error["message"], error["error_code"])
    - No ranking between bids: any pending bid is acceptable to the owner
"""

from skillloop.core.domain_types import BidStatus, RequestStatus, WalletAddress

MIN_HOURLY_RATE = 5
MAX_HOURLY_RATE = 20


def compute_total_cost(rate: float, duration: int) -> float:
    """SKL owed for `duration` minutes at `rate` SKL/hour."""
    return round(rate * duration / 60, 2)


def check_hourly_rate(rate: float) -> dict | None:
    if rate < MIN_HOURLY_RATE or rate > MAX_HOURLY_RATE:
        return {
            "error_code": "RATE_OUT_OF_RANGE",
            "message": (
                f"Hourly rate must be between {MIN_HOURLY_RATE}-"
                f"{MAX_HOURLY_RATE} SKL per hour"
            ),
        }
    return None


def check_request_open(status: RequestStatus) -> dict | None:
    if status != RequestStatus.OPEN:
        return {
            "error_code": "REQUEST_NOT_OPEN",
            "message": "Learning request is not open for bids",
        }
    return None


def check_not_own_request(
    owner: WalletAddress, tutor: WalletAddress,
) -> dict | None:
    if owner == tutor:
        return {
            "error_code": "OWN_REQUEST",
            "message": "You cannot bid on your own learning request",
        }
    return None


def check_within_budget(exact_cost: float, max_budget: float) -> dict | None:
    """exact_cost is rate * duration / 60 before rounding: sub-cent overruns still fail."""
    if exact_cost > max_budget:
        return {
            "error_code": "OVER_BUDGET",
            "message": (
                f"Total cost ({exact_cost:g} SKL) exceeds maximum budget "
                f"({max_budget:g} SKL)"
            ),
        }
    return None


def check_no_pending_bid(
    existing: list[tuple[WalletAddress, BidStatus]], tutor: WalletAddress,
) -> dict | None:
    """existing is (tutor_address, status) for every bid on the request."""
    if any(t == tutor and s == BidStatus.PENDING for t, s in existing):
        return {
            "error_code": "DUPLICATE_PENDING_BID",
            "message": "You already have a pending bid for this request",
        }
    return None


def check_bid_pending(status: BidStatus) -> dict | None:
    if status != BidStatus.PENDING:
        return {
            "error_code": "BID_NOT_PENDING",
            "message": "Bid is no longer pending",
        }
    return None


def validate_bid_submission(
    request_status: RequestStatus,
    owner: WalletAddress,
    tutor: WalletAddress,
    exact_cost: float,
    max_budget: float,
    existing: list[tuple[WalletAddress, BidStatus]],
) -> dict | None:
    """Chain all submission checks. Returns first error or None."""
    return (
        check_request_open(request_status)
        or check_not_own_request(owner, tutor)
        or check_within_budget(exact_cost, max_budget)
        or check_no_pending_bid(existing, tutor)
    )
