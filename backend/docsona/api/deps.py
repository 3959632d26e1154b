from __future__ import annotations


from datetime import datetime

from docsona.db.session import get_session


def get_db():
    with get_session() as session:
        yield session


def get_now() -> datetime:
    """Reference wall-clock time for a request; overridden in tests."""
    return datetime.now()
