"""Helpers for documents that embed a ``secrets`` array."""

from typing import Any, Dict, List, Optional

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from shipiq.models.secret import EncryptedSecret


class EmbeddedSecretsMixin:
    collection: Collection

    def get_secrets(self, query: Dict[str, Any]) -> Optional[List[EncryptedSecret]]:
        """Return the scope's secrets, or None when the scope document is missing."""
        doc = self.collection.find_one(query, {"secrets": 1})
        if doc is None:
            return None
        return [EncryptedSecret.model_validate(s) for s in doc.get("secrets") or []]

    def pull_secret(self, query: Dict[str, Any], key: str) -> bool:
        result = self.collection.update_one(query, {"$pull": {"secrets": {"key": key}}})
        return result.modified_count > 0

    def push_secret(
        self,
        query: Dict[str, Any],
        secret: EncryptedSecret,
        set_on_insert: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Append a secret; with ``set_on_insert`` the scope document is created if needed.

        Returns False when no document matched and none was created.
        """
        update: Dict[str, Any] = {"$push": {"secrets": secret.model_dump()}}
        upsert = set_on_insert is not None
        if upsert:
            update["$setOnInsert"] = set_on_insert
        try:
            result = self.collection.update_one(query, update, upsert=upsert)
        except DuplicateKeyError:
            # Lost an insert race on the unique key; the document exists now.
            update.pop("$setOnInsert", None)
            result = self.collection.update_one(query, update)
        return result.matched_count > 0 or result.upserted_id is not None
