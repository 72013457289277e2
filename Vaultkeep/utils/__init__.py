"""Shared helpers: exceptions and time handling."""

from .errors import (
    VaultkeepException,
    ConfigurationError,
    StorageError,
    ArchiveError,
    ArchiveCorruptedError,
    ValidationError,
    InvalidDateError,
    RestoreFilterError,
    timed_operation,
)
from .timeutils import (
    utc_now,
    utc_today,
    iso_now,
    parse_timestamp,
    age_in_days,
    month_key,
    parse_duration,
    format_duration,
)
