"""Exception taxonomy for the sync core.

Every error raised on purpose by mailsync derives from MailSyncError so the
orchestrator boundary can turn it into a per-account outcome.
"""

from typing import Optional


class MailSyncError(Exception):
    """Base class for all sync core errors."""


class ConfigurationError(MailSyncError):
    """Required process configuration is missing or malformed."""


class DecryptionError(MailSyncError):
    """Stored credential failed authentication or is malformed. Never retried."""


class CredentialMissingError(MailSyncError):
    """No mailbox credential is stored for the account (never linked)."""


class UpstreamAuthError(MailSyncError):
    """Provider rejected the credential (e.g. revoked consent). Not retried."""

    def __init__(self, message: str, status: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.error_code = error_code


class UpstreamUnavailableError(MailSyncError):
    """Transient upstream failures persisted past the retry budget."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class UpstreamRequestError(MailSyncError):
    """Mailbox API answered with a permanent, non-auth failure status."""

    def __init__(self, message: str, status: int, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class HistoryExpiredError(MailSyncError):
    """The stored history cursor is too old for the provider's change feed."""


class PersistenceError(MailSyncError):
    """Storage failed while ingesting; the run is aborted without cursor advance."""
