"""Storage-level constants shared by the database facade and backends."""

from __future__ import annotations

from pathlib import Path

# Version of the on-disk schema understood by the code-navigation frontend.
STORAGE_VERSION = 25

DATABASE_EXTENSION = ".srctrldb"
PROJECT_EXTENSION = ".srctrlprj"

PROJECT_SETTINGS_XML = """<?xml version="1.0" encoding="utf-8"?>
<config>
    <version>0</version>
</config>"""

NAME_DELIMITER_FILE = "/"
NAME_DELIMITER_CXX = "::"
NAME_DELIMITER_JAVA = "."
NAME_DELIMITER_UNKNOWN = "@"

UNSOLVED_SYMBOL_NAME = "unsolved symbol"

# "sqlite" writes the frontend-compatible file; "kuzu" and "memory" are
# alternative stores implementing the same contract.
DEFAULT_BACKEND = "sqlite"

def resolve_database_path(path: str | Path) -> Path:
    """Return *path* with the database extension enforced.

    ``project`` and ``project.db`` both become ``project.srctrldb``; a path
    already ending in :data:`DATABASE_EXTENSION` is returned unchanged.
    """
    target = Path(path)
    if target.suffix != DATABASE_EXTENSION:
        target = target.with_suffix(DATABASE_EXTENSION)
    return target
