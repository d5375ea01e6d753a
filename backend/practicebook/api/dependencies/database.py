# backend/practicebook/api/dependencies/database.py
from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as _session_scope


def get_db() -> Generator[Session, None, None]:
    """Request-scoped database session."""
    yield from _session_scope()
