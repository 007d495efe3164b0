"""Symtrail configuration: storage constants and language detection."""

from symtrail.config.languages import SUPPORTED_EXTENSIONS, get_language, is_supported
from symtrail.config.storage import (
    DATABASE_EXTENSION,
    DEFAULT_BACKEND,
    NAME_DELIMITER_CXX,
    NAME_DELIMITER_FILE,
    NAME_DELIMITER_JAVA,
    NAME_DELIMITER_UNKNOWN,
    PROJECT_EXTENSION,
    PROJECT_SETTINGS_XML,
    STORAGE_VERSION,
    UNSOLVED_SYMBOL_NAME,
    resolve_database_path,
)

__all__ = [
    "DATABASE_EXTENSION",
    "DEFAULT_BACKEND",
    "NAME_DELIMITER_CXX",
    "NAME_DELIMITER_FILE",
    "NAME_DELIMITER_JAVA",
    "NAME_DELIMITER_UNKNOWN",
    "PROJECT_EXTENSION",
    "PROJECT_SETTINGS_XML",
    "STORAGE_VERSION",
    "SUPPORTED_EXTENSIONS",
    "UNSOLVED_SYMBOL_NAME",
    "get_language",
    "is_supported",
    "resolve_database_path",
]
