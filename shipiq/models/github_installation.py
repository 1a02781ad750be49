"""GitHub installation entity - tracks GitHub App installations"""

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import ConfigDict, Field

from .base import BaseEntity, utcnow
from .secret import EncryptedSecret


class AccountType(str, Enum):
    USER = "User"
    ORGANIZATION = "Organization"


class GithubInstallation(BaseEntity):
    model_config = ConfigDict(use_enum_values=True)

    installation_id: int
    account_login: str
    account_type: AccountType
    repositories: List[str] = Field(default_factory=list)  # "owner/repo"
    suspended: bool = False
    installed_at: datetime = Field(default_factory=utcnow)
    secrets: List[EncryptedSecret] = Field(default_factory=list)
