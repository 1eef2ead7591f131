"""
Wallet error taxonomy.

InvalidIdentifier and BackendUnavailable reach callers; LookupMiss and
AwardUnconfirmed are raised and recovered inside the service layer.
"""

from __future__ import annotations

from typing import Optional


class WalletError(Exception):
    code = "wallet_error"
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidIdentifier(WalletError):
    """Input is not a well-formed child UUID. Raised before any query runs."""

    code = "invalid_identifier"
    status_code = 400

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid child identifier: {value!r}")


class LookupMiss(WalletError):
    """No child_profiles row for the key; callers use the key as both forms."""

    code = "lookup_miss"
    status_code = 404


class BackendUnavailable(WalletError):
    """Every data path for an operation failed."""

    code = "wallet_unavailable"
    status_code = 503


# Name used by wallet callers for the same condition.
WalletUnavailable = BackendUnavailable


class AwardUnconfirmed(WalletError):
    """The idempotent award RPC did not positively confirm a write."""

    code = "award_unconfirmed"
    status_code = 502
