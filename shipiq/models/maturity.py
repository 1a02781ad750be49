"""Maturity scoring value objects"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, StrictBool


class MaturityLevel(str, Enum):
    HEALTHY = "HEALTHY"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    CRITICAL = "CRITICAL"
    NOT_ANALYZED = "NOT_ANALYZED"


class MaturitySignals(BaseModel):
    """Signals not derived from the gap report yet; all default to not detected."""

    port_exposure: StrictBool = False
    test_step: StrictBool = False


class MaturityCheck(BaseModel):
    key: str
    passed: bool
    weight: int


class MaturityCategory(BaseModel):
    max: int
    score: int = 0
    checks: List[MaturityCheck] = Field(default_factory=list)


class MaturityReport(BaseModel):
    total_score: int = 0
    max_score: int = 100
    categories: Dict[str, MaturityCategory] = Field(default_factory=dict)


class RepositoryOverview(BaseModel):
    full_name: str
    maturity_score: Optional[int] = None
    maturity_level: MaturityLevel = MaturityLevel.NOT_ANALYZED
    last_scanned_at: Optional[datetime] = None


class InstallationOverview(BaseModel):
    installation_id: int
    total_repositories: int
    average_maturity: int
    repositories: List[RepositoryOverview] = Field(default_factory=list)
