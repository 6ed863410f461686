"""Progress Tracking — the fixed structured record nested inside an in-progress session.

Invariants:
    - All functions are PURE: no IO, no async, no DB; updates return a new record
    - overall_progress == round_half_up(100 * completed / total), recomputed on every read
    - can_complete == overall_progress >= 70 (progress only; attendance is re-checked at completion)
    - attendance_verified == participants >= 2 and attendance_rate >= 80
    - Derived fields are serialized for clients but ignored by from_dict()

Design Decisions:
    - Derived values as properties: exactly one place computes them, so a stored or
      caller-supplied value can never drift from the milestones
    - Half-up rounding in integer arithmetic: Python's round() is banker's rounding
    - Milestone ids are strings (uuid4 hex) so the record round-trips through a JSON column
"""

import copy
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Callable
from uuid import uuid4

from skillloop.core.errors import ResourceNotFoundError, ValidationError

COMPLETION_PROGRESS_THRESHOLD = 70
ATTENDANCE_RATE_THRESHOLD = 80
MIN_MEETING_PARTICIPANTS = 2
MIN_TIME_FRACTION = 0.7


@dataclass
class Milestone:
    id: str
    title: str
    description: str
    target_time: int  # minutes from session start
    completed: bool = False
    completed_at: str | None = None
    notes: str | None = None


@dataclass
class ProgressTracking:
    """Per-session progress record — pure dataclass, no IO."""

    milestones: list[Milestone] = field(default_factory=list)
    time_spent: int = 0
    participant_count: int = 0
    attendance_rate: float = 0.0
    meeting_recording_url: str | None = None
    learner_engagement: int = 0
    objectives_achieved: list[str] = field(default_factory=list)
    next_steps: str | None = None

    @property
    def completed_count(self) -> int:
        return sum(1 for m in self.milestones if m.completed)

    @property
    def overall_progress(self) -> int:
        total = len(self.milestones)
        if total == 0:
            return 0
        # half-up
        return (200 * self.completed_count + total) // (2 * total)

    @property
    def can_complete(self) -> bool:
        return self.overall_progress >= COMPLETION_PROGRESS_THRESHOLD

    @property
    def attendance_verified(self) -> bool:
        return (
            self.participant_count >= MIN_MEETING_PARTICIPANTS
            and self.attendance_rate >= ATTENDANCE_RATE_THRESHOLD
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["overall_progress"] = self.overall_progress
        data["can_complete"] = self.can_complete
        data["attendance_verified"] = self.attendance_verified
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressTracking":
        return cls(
            milestones=[Milestone(**m) for m in data.get("milestones", [])],
            time_spent=data.get("time_spent", 0),
            participant_count=data.get("participant_count", 0),
            attendance_rate=data.get("attendance_rate", 0.0),
            meeting_recording_url=data.get("meeting_recording_url"),
            learner_engagement=data.get("learner_engagement", 0),
            objectives_achieved=list(data.get("objectives_achieved", [])),
            next_steps=data.get("next_steps"),
        )


# ─── Initialization ──────────────────────────────────────────────

def generate_milestones(
    skill_name: str, duration: int,
    id_factory: Callable[[], str] = lambda: uuid4().hex,
) -> list[Milestone]:
    """Five fixed checkpoints scaled to the session duration."""
    return [
        Milestone(
            id_factory(), "Session Introduction",
            "Introductions, goal setting, and agenda overview",
            min(5, duration),
        ),
        Milestone(
            id_factory(), "Core Concept Explanation",
            f"Understanding fundamental concepts of {skill_name}",
            int(duration * 0.3),
        ),
        Milestone(
            id_factory(), "Hands-on Practice",
            "Practical exercises and real-world application",
            int(duration * 0.6),
        ),
        Milestone(
            id_factory(), "Q&A and Clarification",
            "Questions, doubts clarification, and additional examples",
            int(duration * 0.8),
        ),
        Milestone(
            id_factory(), "Session Summary",
            "Key takeaways, next steps, and resource recommendations",
            max(duration - 5, 0),
        ),
    ]


OBJECTIVE_TEMPLATES: dict[str, list[str]] = {
    "solidity": [
        "Understand smart contract basics and structure",
        "Write and deploy a simple smart contract",
        "Implement basic functions and state variables",
        "Understand gas optimization principles",
    ],
    "react": [
        "Understand component lifecycle and hooks",
        "Build interactive user interfaces",
        "Manage state effectively",
        "Implement proper event handling",
    ],
    "defi": [
        "Understand decentralized finance protocols",
        "Learn about liquidity pools and yield farming",
        "Explore lending and borrowing mechanisms",
        "Understand tokenomics and governance",
    ],
    "web3": [
        "Connect to blockchain networks",
        "Interact with smart contracts",
        "Implement wallet integration",
        "Understand decentralized applications",
    ],
}


def generate_learning_objectives(skill_name: str) -> list[str]:
    """First keyword contained in the skill name wins, else a generic template."""
    lowered = skill_name.lower()
    for keyword, objectives in OBJECTIVE_TEMPLATES.items():
        if keyword in lowered:
            return list(objectives)
    return [
        f"Understand core concepts of {skill_name}",
        "Apply practical knowledge through exercises",
        "Identify common patterns and best practices",
        "Plan next steps for continued learning",
    ]


def initialize_progress(skill_name: str, duration: int) -> ProgressTracking:
    return ProgressTracking(milestones=generate_milestones(skill_name, duration))


# ─── Updates ─────────────────────────────────────────────────────

def apply_milestone_update(
    progress: ProgressTracking,
    milestone_id: str,
    completed: bool,
    notes: str | None,
    now: datetime,
) -> ProgressTracking:
    """Set one milestone's completed flag. Re-applying the same value is a no-op."""
    updated = copy.deepcopy(progress)
    for milestone in updated.milestones:
        if milestone.id != milestone_id:
            continue
        if milestone.completed != completed:
            milestone.completed = completed
            milestone.completed_at = now.isoformat() if completed else None
        if notes:
            milestone.notes = notes
        return updated
    raise ResourceNotFoundError("Milestone", milestone_id)


def apply_meeting_data(
    progress: ProgressTracking,
    participants: list[str],
    attendance_rate: float,
    duration: int,
    recording_url: str | None,
) -> ProgressTracking:
    if duration < 0:
        raise ValidationError("Meeting duration cannot be negative", "duration")
    if not 0 <= attendance_rate <= 100:
        raise ValidationError(
            "Attendance rate must be between 0 and 100", "attendance_rate",
        )
    updated = copy.deepcopy(progress)
    updated.time_spent = duration
    updated.participant_count = len(participants)
    updated.attendance_rate = attendance_rate
    if recording_url:
        updated.meeting_recording_url = recording_url
    return updated


def apply_final_notes(
    progress: ProgressTracking,
    learner_engagement: int | None,
    final_notes: str | None,
    objectives_achieved: list[str] | None,
) -> ProgressTracking:
    """Fold the tutor's completion-time remarks into the record."""
    updated = copy.deepcopy(progress)
    if learner_engagement is not None:
        updated.learner_engagement = learner_engagement
    if final_notes:
        updated.next_steps = final_notes
    if objectives_achieved is not None:
        updated.objectives_achieved = list(objectives_achieved)
    return updated
