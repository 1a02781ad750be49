"""Repository configuration entity - per-repository secrets and last scan"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, utcnow
from .maturity import MaturityReport
from .scan import GapReport, StackReport
from .secret import EncryptedSecret


class ScanSnapshot(BaseModel):
    gaps: GapReport
    maturity: MaturityReport
    branch: str = "main"
    stack: StackReport = Field(default_factory=StackReport)
    env_vars: List[str] = Field(default_factory=list)
    scanned_at: datetime = Field(default_factory=utcnow)


class RepositoryConfig(BaseEntity):
    full_name: str  # "owner/repo"
    installation_id: int
    secrets: List[EncryptedSecret] = Field(default_factory=list)
    last_scan: Optional[ScanSnapshot] = None
