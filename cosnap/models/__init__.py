"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Row classes carry a "Row" suffix: the unsuffixed names are the core's records

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all/alembic
"""

from cosnap.models.profile import ProfileRow  # noqa: F401
from cosnap.models.flag import FlagRow  # noqa: F401
from cosnap.models.offer import OfferRow  # noqa: F401
from cosnap.models.match import MatchRow  # noqa: F401
from cosnap.models.conversation import ConversationRow  # noqa: F401
from cosnap.models.notification import NotificationRow  # noqa: F401
