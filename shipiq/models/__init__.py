"""Entity and value models"""

from .base import BaseEntity, PyObjectId
from .classification import CIStage, FailureType, RunClassification, RunStatus
from .github_installation import AccountType, GithubInstallation
from .maturity import (
    InstallationOverview,
    RepositoryOverview,
    MaturityCategory,
    MaturityCheck,
    MaturityLevel,
    MaturityReport,
    MaturitySignals,
)
from .provisioning import ProvisioningResult
from .repository_config import RepositoryConfig, ScanSnapshot
from .scan import (
    GapReport,
    RepoRef,
    RepositoryTree,
    RepoUrlParse,
    ScanResult,
    StackReport,
    TreeEntry,
)
from .secret import (
    MASKED_VALUE,
    EncryptedSecret,
    InstallationScope,
    MaskedSecret,
    RepositoryScope,
    SecretValue,
)

__all__ = [
    "BaseEntity",
    "PyObjectId",
    "AccountType",
    "GithubInstallation",
    "RepositoryConfig",
    "ScanSnapshot",
    "EncryptedSecret",
    "MaskedSecret",
    "SecretValue",
    "InstallationScope",
    "RepositoryScope",
    "MASKED_VALUE",
    "GapReport",
    "RepoRef",
    "RepoUrlParse",
    "RepositoryTree",
    "ScanResult",
    "StackReport",
    "TreeEntry",
    "MaturityCategory",
    "MaturityCheck",
    "MaturityLevel",
    "MaturityReport",
    "MaturitySignals",
    "InstallationOverview",
    "RepositoryOverview",
    "CIStage",
    "FailureType",
    "RunClassification",
    "RunStatus",
    "ProvisioningResult",
]
