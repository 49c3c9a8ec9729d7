from __future__ import annotations

class CheckinError(Exception):
    """Base class for check-in service failures."""

class EncodingError(CheckinError):
    """Token could not be turned into a QR image (malformed or over capacity)."""

class LedgerUnavailable(CheckinError):
    """The consumption ledger could not be reached; admission cannot be verified."""
