"""Secret entities - encrypted at rest, masked on the way out"""

from datetime import datetime

from pydantic import BaseModel, Field

from .base import utcnow

MASKED_VALUE = "••••••••••••••••"


class EncryptedSecret(BaseModel):
    key: str
    encrypted_value: str  # hex
    iv: str  # hex
    updated_at: datetime = Field(default_factory=utcnow)


class MaskedSecret(BaseModel):
    key: str
    masked_value: str = MASKED_VALUE
    updated_at: datetime


class SecretValue(BaseModel):
    """Decrypted secret, only handed to the remote provisioner."""

    key: str
    value: str

    def __repr__(self) -> str:
        return f"SecretValue(key={self.key!r}, value='***')"

    __str__ = __repr__


class InstallationScope(BaseModel):
    """Secrets shared by every repository of an installation."""

    installation_id: int

    @property
    def label(self) -> str:
        return f"installation:{self.installation_id}"


class RepositoryScope(BaseModel):
    full_name: str  # "owner/repo"
    installation_id: int

    @property
    def label(self) -> str:
        return f"repository:{self.full_name}"
