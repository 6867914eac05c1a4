"""Shared plumbing for the repository layer.

Repositories talk to the Flask-SQLAlchemy session and hand plain dicts
back to services, so nothing above this package holds ORM instances.
"""

from contextlib import contextmanager
from datetime import UTC, datetime

from extensions import db


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(UTC).replace(tzinfo=None)


class BaseRepository:
    """Session access, deferred commits and row serialization."""

    def __init__(self):
        self._batch_mode = False

    @property
    def session(self):
        return db.session

    def _commit(self):
        # Inside batch() the commit happens once, on exit
        if self._batch_mode:
            return
        self.session.commit()

    @contextmanager
    def batch(self):
        """Group writes made through this repository into one commit.

        Any exception rolls the whole group back and is re-raised.
        """
        self._batch_mode = True
        try:
            yield self
        except Exception:
            self.session.rollback()
            raise
        else:
            self.session.commit()
        finally:
            self._batch_mode = False

    def _to_dict(self, row, columns=None):
        """Serialize an ORM row to a dict of column values (None passes through)."""
        if row is None:
            return None
        keys = columns or [column.key for column in row.__table__.columns]
        return {key: getattr(row, key) for key in keys}

    def _now(self) -> datetime:
        return utcnow()
