"""
db-spine core - errors, logging, settings, hashing and protocols.

SYNC-ONLY: every primitive here is synchronous and side-effect free apart
from logging.
"""

from dbspine.core.errors import (
    ChecksumUnavailableError,
    ErrorCategory,
    ErrorContext,
    IdentityGenerationError,
    InvalidConfigError,
    SourceQueryError,
    SpineError,
    StatePersistenceError,
)
from dbspine.core.hashing import generate_doc_id, row_checksum, sha1_hex

__all__ = [
    "ChecksumUnavailableError",
    "ErrorCategory",
    "ErrorContext",
    "IdentityGenerationError",
    "InvalidConfigError",
    "SourceQueryError",
    "SpineError",
    "StatePersistenceError",
    "generate_doc_id",
    "row_checksum",
    "sha1_hex",
]
