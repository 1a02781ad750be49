import logging
from datetime import datetime, timezone
from typing import List, Optional

from pymongo.database import Database

from shipiq.exceptions import InstallationNotFoundError, UpstreamApiError
from shipiq.github_auth import TokenBroker
from shipiq.models.github_installation import AccountType, GithubInstallation
from shipiq.repositories import GithubInstallationRepository

logger = logging.getLogger(__name__)


class InstallationService:
    def __init__(self, db: Database, broker: TokenBroker):
        self.broker = broker
        self.repo = GithubInstallationRepository(db)

    def link_installation(self, installation_id: int) -> GithubInstallation:
        """Record (or refresh) an installation using GitHub's view of its account."""
        details = self.broker.get_installation_details(installation_id)
        account = details.get("account") or {}
        login = account.get("login")
        account_type = account.get("type")
        if not login or account_type not in {t.value for t in AccountType}:
            raise UpstreamApiError(
                f"Installation {installation_id} details are missing account information",
                status_code=None,
            )

        installation = self.repo.upsert_installation(
            int(installation_id),
            {
                "account_login": login,
                "account_type": account_type,
                "suspended": False,
                "installed_at": datetime.now(timezone.utc),
            },
        )
        logger.info("Linked installation %s for %s", installation_id, login)
        return installation

    def get_installation(self, installation_id: int) -> GithubInstallation:
        installation = self.repo.find_by_installation_id(installation_id)
        if installation is None:
            raise InstallationNotFoundError(
                f"Installation {installation_id} not found or suspended"
            )
        return installation

    def find_installation_for_account(self, account_login: str) -> Optional[GithubInstallation]:
        return self.repo.find_by_account_login(account_login)

    def sync_repositories(self, installation_id: int) -> List[str]:
        """Replace the stored repository list with what the installation can see."""
        self.get_installation(installation_id)
        with self.broker.installation_client(installation_id) as gh:
            full_names = [
                repo["full_name"]
                for repo in gh.iter_installation_repositories()
                if repo.get("full_name")
            ]
        self.repo.set_repositories(installation_id, full_names)
        logger.info(
            "Synced %d repositories for installation %s", len(full_names), installation_id
        )
        return full_names

    def add_repositories(
        self, installation_id: int, repositories: List[str]
    ) -> Optional[GithubInstallation]:
        return self.repo.add_repositories(installation_id, repositories)

    def remove_repositories(
        self, installation_id: int, repositories: List[str]
    ) -> Optional[GithubInstallation]:
        return self.repo.remove_repositories(installation_id, repositories)

    def set_suspended(self, installation_id: int, suspended: bool) -> bool:
        updated = self.repo.set_suspended(installation_id, suspended)
        if suspended:
            self.broker.clear_installation_token(installation_id)
        return updated
