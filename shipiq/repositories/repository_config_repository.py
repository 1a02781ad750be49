"""Repository for per-repository configuration documents."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from shipiq.models.repository_config import RepositoryConfig, ScanSnapshot
from shipiq.repositories.base import BaseRepository, CollectionName
from shipiq.repositories.embedded_secrets import EmbeddedSecretsMixin


class RepositoryConfigRepository(EmbeddedSecretsMixin, BaseRepository[RepositoryConfig]):
    def __init__(self, db):
        super().__init__(db, CollectionName.REPOSITORY_CONFIGS, RepositoryConfig)
        self.collection.create_index("full_name", unique=True)

    @staticmethod
    def scope_query(full_name: str) -> Dict[str, Any]:
        return {"full_name": full_name}

    @staticmethod
    def insert_defaults(full_name: str, installation_id: int) -> Dict[str, Any]:
        return {
            "full_name": full_name,
            "installation_id": int(installation_id),
            "created_at": datetime.now(timezone.utc),
        }

    def find_by_full_name(self, full_name: str) -> Optional[RepositoryConfig]:
        return self.find_one(self.scope_query(full_name))

    def list_by_installation(self, installation_id: int) -> List[RepositoryConfig]:
        return self.find_many(
            {"installation_id": int(installation_id)}, sort=[("full_name", 1)]
        )

    def save_last_scan(
        self, full_name: str, installation_id: int, snapshot: ScanSnapshot
    ) -> RepositoryConfig:
        now = datetime.now(timezone.utc)
        doc = self.collection.find_one_and_update(
            self.scope_query(full_name),
            {
                "$set": {"last_scan": snapshot.model_dump(), "updated_at": now},
                "$setOnInsert": {
                    **self.insert_defaults(full_name, installation_id),
                    "secrets": [],
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)


__all__ = ["RepositoryConfigRepository"]
