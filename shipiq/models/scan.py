"""Gap scan value objects"""

from typing import List, Optional

from pydantic import BaseModel, Field, StrictBool


class RepoRef(BaseModel):
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class RepoUrlParse(BaseModel):
    """Outcome of parsing a repository URL; check ``ok`` before using ``ref``."""

    ok: bool
    ref: Optional[RepoRef] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, owner: str, repo: str) -> "RepoUrlParse":
        return cls(ok=True, ref=RepoRef(owner=owner, repo=repo))

    @classmethod
    def failure(cls, error: str) -> "RepoUrlParse":
        return cls(ok=False, error=error)


class TreeEntry(BaseModel):
    path: str
    type: str = "blob"  # "blob" | "tree" | "commit"


class RepositoryTree(BaseModel):
    ref: str
    entries: List[TreeEntry] = Field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]


class GapReport(BaseModel):
    dockerfile: StrictBool = False
    ci: StrictBool = False
    readme: StrictBool = False
    tests: StrictBool = False

    @property
    def missing(self) -> List[str]:
        return [name for name, present in self.model_dump().items() if not present]


class StackReport(BaseModel):
    has_backend: bool = False
    has_frontend: bool = False
    has_backend_folder: bool = False
    has_frontend_folder: bool = False
    # "" is the repository root; None means not detected.
    backend_path: Optional[str] = None
    frontend_path: Optional[str] = None
    backend_type: Optional[str] = None
    frontend_type: Optional[str] = None


class ScanResult(BaseModel):
    """Everything one scan learns about a repository."""

    ref: RepoRef
    branch: str
    gaps: GapReport
    stack: StackReport = Field(default_factory=StackReport)
    env_vars: List[str] = Field(default_factory=list)
