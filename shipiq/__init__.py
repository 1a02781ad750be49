"""ShipIQ core: repository maturity scanning and GitHub secret provisioning."""

from .exceptions import (
    ConfigurationError,
    DecryptionError,
    InstallationNotFoundError,
    InvalidRepositoryUrlError,
    InvalidSecretError,
    RateLimitError,
    RepositoryNotFoundError,
    SecretStoreBusyError,
    ShipIQError,
    UpstreamApiError,
    UpstreamAuthError,
    UpstreamError,
    WebhookSignatureError,
)
from .logging import OTelJSONFormatter, setup_logging

__all__ = [
    "ShipIQError",
    "ConfigurationError",
    "DecryptionError",
    "InstallationNotFoundError",
    "InvalidRepositoryUrlError",
    "InvalidSecretError",
    "RateLimitError",
    "RepositoryNotFoundError",
    "SecretStoreBusyError",
    "UpstreamApiError",
    "UpstreamAuthError",
    "UpstreamError",
    "WebhookSignatureError",
    "OTelJSONFormatter",
    "setup_logging",
]
