"""Database package - ORM models, repositories, and schema bootstrap.

Tables are created through Flask-SQLAlchemy's create_all(); there is no
migration chain. init_db() must run inside an application context.
"""

import logging

from extensions import db as sa_db

logger = logging.getLogger(__name__)


def init_db():
    """Create missing tables and seed default application settings.

    Existing settings rows are never overwritten, so user-changed values
    survive restarts.
    """
    import db.models  # noqa: F401 -- register models with metadata
    from settings_service import DEFAULT_SETTINGS
    from db.repositories.config import ConfigRepository

    sa_db.create_all()

    repo = ConfigRepository()
    added = 0
    with repo.batch():
        for key, (value, description) in DEFAULT_SETTINGS.items():
            if repo.add_if_missing(key, value, description):
                added += 1

    if added:
        logger.info("Seeded %d default settings", added)
    logger.info("Database initialized at %s", sa_db.engine.url)
