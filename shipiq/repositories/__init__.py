"""Repository exports for shipiq."""

from .base import BaseRepository, CollectionName
from .github_installation_repository import GithubInstallationRepository
from .repository_config_repository import RepositoryConfigRepository

__all__ = [
    "BaseRepository",
    "CollectionName",
    "GithubInstallationRepository",
    "RepositoryConfigRepository",
]
