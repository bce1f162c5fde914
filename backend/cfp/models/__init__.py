"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Talk is the aggregate root for ratings, labels and transition events

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all or
      Alembic autogenerate runs
"""

from cfp.models.conference import Conference  # noqa: F401
from cfp.models.track import Track  # noqa: F401
from cfp.models.talk import Talk  # noqa: F401
from cfp.models.rating import Rating  # noqa: F401
from cfp.models.label import Label, TalkLabel  # noqa: F401
from cfp.models.schedule_slot import ScheduleSlot  # noqa: F401
from cfp.models.transition_event import TransitionEvent  # noqa: F401
