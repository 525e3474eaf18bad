"""Detection of "safe" maintenance runs.

Falling back to dummy members masks a missing or broken enumeration table.
That is only acceptable when the process is a maintenance task (for instance
a migration run that is about to create the table), never while serving the
application.  A run counts as maintenance when any of these holds:

* the code runs inside ``maintenance_context()``
* ``PERSISTENT_ENUM_MAINTENANCE_MODE`` is true
* the program basename is listed in ``PERSISTENT_ENUM_MAINTENANCE_COMMANDS``
  (``alembic`` by default)

Examples:
    >>> with maintenance_context():
    ...     is_maintenance_context()
    True

Tags:
    persistent-enum, fallback, maintenance
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

from persistent_enum.settings import get_settings

_maintenance: ContextVar[bool] = ContextVar("persistent_enum_maintenance", default=False)


@contextmanager
def maintenance_context() -> Iterator[None]:
    """Mark the enclosed block as a maintenance run."""
    token = _maintenance.set(True)
    try:
        yield
    finally:
        _maintenance.reset(token)


def _running_command() -> str:
    if not sys.argv or not sys.argv[0]:
        return ""
    return Path(sys.argv[0]).stem


def is_maintenance_context() -> bool:
    if _maintenance.get():
        return True
    settings = get_settings()
    if settings.maintenance_mode:
        return True
    return _running_command() in settings.maintenance_commands


__all__ = ["maintenance_context", "is_maintenance_context"]
