"""Encrypted secret storage scoped to an installation or a repository.

Each scope document keeps a ``secrets`` array with at most one entry per
key. Writing a key removes the old entry and appends the new one while
holding a Redis lock for that (scope, key) pair, so two writers of the same
key cannot both append. Writers of different keys do not contend.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from pymongo.database import Database

from shipiq.exceptions import (
    DecryptionError,
    InstallationNotFoundError,
    InvalidSecretError,
    SecretStoreBusyError,
)
from shipiq.models.secret import (
    EncryptedSecret,
    InstallationScope,
    MaskedSecret,
    RepositoryScope,
    SecretValue,
)
from shipiq.repositories import GithubInstallationRepository, RepositoryConfigRepository
from shipiq.services.secret_cipher import SecretCipher
from shipiq.utils.locking import redis_lock

logger = logging.getLogger(__name__)

SecretScope = Union[InstallationScope, RepositoryScope]

SECRET_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
RESERVED_PREFIX = "GITHUB_"


def normalize_secret_key(key: Any) -> str:
    """Upper-case the key and turn separators into underscores."""
    if not isinstance(key, str) or not key.strip():
        raise InvalidSecretError("Secret key is required")
    normalized = re.sub(r"[\s.\-]+", "_", key.strip()).upper()
    if not SECRET_NAME_PATTERN.match(normalized):
        raise InvalidSecretError(
            f"Secret key {key!r} may only contain letters, digits and underscores "
            "and must not start with a digit"
        )
    if normalized.startswith(RESERVED_PREFIX):
        raise InvalidSecretError(f"Secret key must not start with {RESERVED_PREFIX}")
    return normalized


class SecretStore:
    def __init__(
        self,
        db: Database,
        cipher: SecretCipher,
        redis_client: Any,
        lock_timeout: int = 10,
    ) -> None:
        self.cipher = cipher
        self.redis = redis_client
        self.lock_timeout = lock_timeout
        self.installations = GithubInstallationRepository(db)
        self.repositories = RepositoryConfigRepository(db)

    def _get_entries(self, scope: SecretScope) -> Optional[List[EncryptedSecret]]:
        if isinstance(scope, InstallationScope):
            return self.installations.get_secrets(
                self.installations.active_query(scope.installation_id)
            )
        return self.repositories.get_secrets(
            self.repositories.scope_query(scope.full_name)
        )

    def upsert_secret(self, scope: SecretScope, key: str, value: str) -> EncryptedSecret:
        name = normalize_secret_key(key)
        if not isinstance(value, str) or value == "":
            raise InvalidSecretError("Secret value is required")

        ciphertext = self.cipher.encrypt(value)
        entry = EncryptedSecret(
            key=name,
            encrypted_value=ciphertext.encrypted_value,
            iv=ciphertext.iv,
            updated_at=datetime.now(timezone.utc),
        )

        lock_name = f"lock:secrets:{scope.label}:{name}"
        with redis_lock(self.redis, lock_name, timeout=self.lock_timeout) as acquired:
            if not acquired:
                raise SecretStoreBusyError(
                    f"Secret {name} in {scope.label} is being updated; retry shortly"
                )
            if isinstance(scope, InstallationScope):
                query = self.installations.active_query(scope.installation_id)
                self.installations.pull_secret(query, name)
                if not self.installations.push_secret(query, entry):
                    raise InstallationNotFoundError(
                        f"Installation {scope.installation_id} not found or suspended"
                    )
            else:
                query = self.repositories.scope_query(scope.full_name)
                self.repositories.pull_secret(query, name)
                self.repositories.push_secret(
                    query,
                    entry,
                    set_on_insert=self.repositories.insert_defaults(
                        scope.full_name, scope.installation_id
                    ),
                )

        logger.info("Stored secret %s for %s", name, scope.label)
        return entry

    def _scope_entries(self, scope: SecretScope) -> List[EncryptedSecret]:
        """Entries of an existing scope; an unknown repository simply has none."""
        entries = self._get_entries(scope)
        if entries is None:
            if isinstance(scope, InstallationScope):
                raise InstallationNotFoundError(
                    f"Installation {scope.installation_id} not found or suspended"
                )
            return []
        return entries

    def list_secrets(self, scope: SecretScope) -> List[MaskedSecret]:
        entries = self._scope_entries(scope)
        return [MaskedSecret(key=e.key, updated_at=e.updated_at) for e in entries]

    def delete_secret(self, scope: SecretScope, key: str) -> bool:
        """Remove a key. Deleting an absent key is not an error; returns whether one was removed."""
        name = normalize_secret_key(key)
        if isinstance(scope, InstallationScope):
            removed = self.installations.pull_secret(
                self.installations.active_query(scope.installation_id), name
            )
        else:
            removed = self.repositories.pull_secret(
                self.repositories.scope_query(scope.full_name), name
            )
        if removed:
            logger.info("Deleted secret %s for %s", name, scope.label)
        return removed

    def decrypt_all(self, scope: SecretScope) -> List[SecretValue]:
        """Decrypt every secret in the scope, or fail without returning any."""
        entries = self._scope_entries(scope)
        values: List[SecretValue] = []
        for entry in entries:
            try:
                plaintext = self.cipher.decrypt(entry.encrypted_value, entry.iv)
            except DecryptionError as exc:
                raise DecryptionError(
                    f"Secret {entry.key} in {scope.label} could not be decrypted"
                ) from exc
            values.append(SecretValue(key=entry.key, value=plaintext))
        return values
