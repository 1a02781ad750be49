"""Repository for GitHub installations."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from shipiq.models.github_installation import GithubInstallation
from shipiq.repositories.base import BaseRepository, CollectionName
from shipiq.repositories.embedded_secrets import EmbeddedSecretsMixin


class GithubInstallationRepository(
    EmbeddedSecretsMixin, BaseRepository[GithubInstallation]
):
    def __init__(self, db):
        super().__init__(db, CollectionName.GITHUB_INSTALLATIONS, GithubInstallation)
        self.collection.create_index("installation_id", unique=True)

    @staticmethod
    def active_query(installation_id: int) -> Dict[str, Any]:
        # Suspended installations never match a lookup.
        return {"installation_id": int(installation_id), "suspended": False}

    def find_by_installation_id(
        self, installation_id: int
    ) -> Optional[GithubInstallation]:
        return self.find_one(self.active_query(installation_id))

    def find_by_account_login(self, account_login: str) -> Optional[GithubInstallation]:
        return self.find_one({"account_login": account_login, "suspended": False})

    def upsert_installation(
        self, installation_id: int, data: Dict[str, Any]
    ) -> GithubInstallation:
        now = datetime.now(timezone.utc)
        on_insert: Dict[str, Any] = {"created_at": now, "repositories": [], "secrets": []}
        if "suspended" not in data:
            on_insert["suspended"] = False
        doc = self.collection.find_one_and_update(
            {"installation_id": int(installation_id)},
            {"$set": {**data, "updated_at": now}, "$setOnInsert": on_insert},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def set_repositories(
        self, installation_id: int, repositories: List[str]
    ) -> Optional[GithubInstallation]:
        return self._update_active(installation_id, {"$set": {"repositories": repositories}})

    def add_repositories(
        self, installation_id: int, repositories: List[str]
    ) -> Optional[GithubInstallation]:
        return self._update_active(
            installation_id,
            {"$addToSet": {"repositories": {"$each": repositories}}},
        )

    def remove_repositories(
        self, installation_id: int, repositories: List[str]
    ) -> Optional[GithubInstallation]:
        return self._update_active(
            installation_id, {"$pull": {"repositories": {"$in": repositories}}}
        )

    def set_suspended(self, installation_id: int, suspended: bool) -> bool:
        result = self.collection.update_one(
            {"installation_id": int(installation_id)},
            {
                "$set": {
                    "suspended": suspended,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.matched_count > 0

    def _update_active(
        self, installation_id: int, update: Dict[str, Any]
    ) -> Optional[GithubInstallation]:
        doc = self.collection.find_one_and_update(
            self.active_query(installation_id),
            update,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)


__all__ = ["GithubInstallationRepository"]
