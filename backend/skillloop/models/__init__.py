"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Session is the aggregate root of the escrow; TokenTransaction and Certificate hang off it

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from skillloop.models.user import User  # noqa: F401
from skillloop.models.learning_request import LearningRequest  # noqa: F401
from skillloop.models.bid import Bid  # noqa: F401
from skillloop.models.session import Session  # noqa: F401
from skillloop.models.token_transaction import TokenTransaction  # noqa: F401
from skillloop.models.certificate import Certificate  # noqa: F401
from skillloop.models.review import Review  # noqa: F401
from skillloop.models.notification import Notification  # noqa: F401
