"""Exception types shared across ShipIQ services."""

from typing import Optional, Union


class ShipIQError(Exception):
    """Base exception for ShipIQ failures."""


class ConfigurationError(ShipIQError):
    """Raised when required configuration (keys, ids, settings) is missing or malformed."""


class UpstreamError(ShipIQError):
    """Raised when a GitHub call fails.

    ``secrets_synced`` is filled in by the remote provisioner when a batch
    stops part way through.
    """

    secrets_synced: Optional[int] = None


class UpstreamAuthError(UpstreamError):
    """Raised when GitHub rejects the app assertion or installation token."""


class UpstreamApiError(UpstreamError):
    """Raised for non-2xx GitHub responses."""

    def __init__(self, message: str, status_code: Optional[int], body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(UpstreamApiError):
    """Raised when GitHub enforces a rate limit."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int],
        body: str = "",
        retry_after: Union[int, float, None] = None,
    ):
        super().__init__(message, status_code, body)
        self.retry_after = retry_after


class RepositoryNotFoundError(ShipIQError):
    """Raised when no candidate branch yields a repository tree."""


class InvalidRepositoryUrlError(ShipIQError):
    pass


class DecryptionError(ShipIQError):
    """Raised when a stored secret cannot be decrypted."""


class InvalidSecretError(ShipIQError):
    pass


class InstallationNotFoundError(ShipIQError):
    """Raised when an installation is unknown or suspended."""


class SecretStoreBusyError(ShipIQError):
    """Raised when a secret key lock cannot be acquired in time."""


class WebhookSignatureError(ShipIQError):
    pass
