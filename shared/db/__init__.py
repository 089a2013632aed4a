"""SQLAlchemy persistence helpers shared by both services."""

from shared.db.base import TimestampedModel, new_uuid, utcnow
from shared.db.database import Database
from shared.db.migrations import downgrade_migrations, run_migrations

__all__ = ["Database", "TimestampedModel", "downgrade_migrations", "new_uuid", "run_migrations", "utcnow"]
