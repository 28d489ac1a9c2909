from clinicjobs.db.session import engine
from clinicjobs.db.base import Base
import clinicjobs.db.models  # noqa: F401


def init_db(bind=None):
    """Create all tables directly (local development and tests)."""
    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":
    init_db()
