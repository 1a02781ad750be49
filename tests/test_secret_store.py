import unittest

import mongomock

from shipiq.exceptions import (
    DecryptionError,
    InstallationNotFoundError,
    InvalidSecretError,
    SecretStoreBusyError,
)
from shipiq.models.secret import MASKED_VALUE, InstallationScope, RepositoryScope
from shipiq.repositories import GithubInstallationRepository
from shipiq.services.secret_cipher import SecretCipher
from shipiq.services.secret_store import SecretStore, normalize_secret_key
from tests.support import TEST_ENCRYPTION_KEY, redis_stub

REPO_SCOPE = RepositoryScope(full_name="acme/widgets", installation_id=42)
INSTALLATION_SCOPE = InstallationScope(installation_id=42)


class SecretStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.db = mongomock.MongoClient().db
        self.redis = redis_stub()
        self.store = SecretStore(self.db, SecretCipher(TEST_ENCRYPTION_KEY), self.redis)

    def add_installation(self, installation_id=42, suspended=False):
        repo = GithubInstallationRepository(self.db)
        repo.upsert_installation(
            installation_id,
            {"account_login": "acme", "account_type": "Organization", "suspended": suspended},
        )


class TestRepositorySecrets(SecretStoreTestCase):
    def test_upsert_twice_keeps_one_entry(self):
        self.store.upsert_secret(REPO_SCOPE, "DATABASE_URL", "v1")
        self.store.upsert_secret(REPO_SCOPE, "DATABASE_URL", "v2")

        doc = self.db.repository_configs.find_one({"full_name": "acme/widgets"})
        self.assertEqual([s["key"] for s in doc["secrets"]], ["DATABASE_URL"])
        values = self.store.decrypt_all(REPO_SCOPE)
        self.assertEqual([(v.key, v.value) for v in values], [("DATABASE_URL", "v2")])

    def test_first_write_creates_scope_document(self):
        self.store.upsert_secret(REPO_SCOPE, "API_KEY", "secret")

        doc = self.db.repository_configs.find_one({"full_name": "acme/widgets"})
        self.assertEqual(doc["installation_id"], 42)
        self.assertIn("created_at", doc)

    def test_stored_value_is_encrypted(self):
        entry = self.store.upsert_secret(REPO_SCOPE, "API_KEY", "plain-text-value")

        doc = self.db.repository_configs.find_one({"full_name": "acme/widgets"})
        stored = doc["secrets"][0]
        self.assertNotIn("plain-text-value", str(doc))
        self.assertEqual(stored["encrypted_value"], entry.encrypted_value)
        self.assertEqual(stored["iv"], entry.iv)

    def test_list_is_masked(self):
        self.store.upsert_secret(REPO_SCOPE, "API_KEY", "secret")
        self.store.upsert_secret(REPO_SCOPE, "TOKEN", "other")

        listed = self.store.list_secrets(REPO_SCOPE)

        self.assertEqual(sorted(s.key for s in listed), ["API_KEY", "TOKEN"])
        for secret in listed:
            self.assertEqual(secret.masked_value, MASKED_VALUE)
            self.assertNotIn("encrypted_value", secret.model_dump())

    def test_list_unknown_repository_is_empty(self):
        self.assertEqual(self.store.list_secrets(REPO_SCOPE), [])
        self.assertEqual(self.store.decrypt_all(REPO_SCOPE), [])

    def test_delete_is_idempotent(self):
        self.store.upsert_secret(REPO_SCOPE, "API_KEY", "secret")

        self.assertTrue(self.store.delete_secret(REPO_SCOPE, "API_KEY"))
        self.assertFalse(self.store.delete_secret(REPO_SCOPE, "API_KEY"))
        self.assertFalse(self.store.delete_secret(REPO_SCOPE, "NEVER_SET"))
        self.assertEqual(self.store.list_secrets(REPO_SCOPE), [])

    def test_key_is_normalized(self):
        self.store.upsert_secret(REPO_SCOPE, "database-url", "v1")
        self.store.upsert_secret(REPO_SCOPE, "DATABASE_URL", "v2")

        self.assertEqual([s.key for s in self.store.list_secrets(REPO_SCOPE)], ["DATABASE_URL"])

    def test_write_holds_key_lock(self):
        self.store.upsert_secret(REPO_SCOPE, "API_KEY", "secret")

        lock_name = self.redis.lock.call_args[0][0]
        self.assertEqual(lock_name, "lock:secrets:repository:acme/widgets:API_KEY")
        self.redis.lock.return_value.release.assert_called_once()

    def test_busy_lock(self):
        store = SecretStore(
            self.db, SecretCipher(TEST_ENCRYPTION_KEY), redis_stub(lock_acquired=False)
        )

        with self.assertRaises(SecretStoreBusyError):
            store.upsert_secret(REPO_SCOPE, "API_KEY", "secret")
        self.assertIsNone(self.db.repository_configs.find_one({}))

    def test_decrypt_all_fails_as_a_whole(self):
        self.store.upsert_secret(REPO_SCOPE, "GOOD", "fine")
        self.store.upsert_secret(REPO_SCOPE, "BROKEN", "soon broken")
        self.db.repository_configs.update_one(
            {"full_name": "acme/widgets", "secrets.key": "BROKEN"},
            {"$set": {"secrets.$.encrypted_value": "abcd"}},
        )

        with self.assertRaises(DecryptionError) as ctx:
            self.store.decrypt_all(REPO_SCOPE)
        self.assertIn("BROKEN", str(ctx.exception))


class TestSecretValidation(SecretStoreTestCase):
    def test_normalize_secret_key(self):
        self.assertEqual(normalize_secret_key(" api.key "), "API_KEY")
        self.assertEqual(normalize_secret_key("node-env"), "NODE_ENV")

    def test_invalid_keys(self):
        for key in ("", None, "1ST", "has$sign", "github_token"):
            with self.subTest(key=key):
                with self.assertRaises(InvalidSecretError):
                    normalize_secret_key(key)

    def test_empty_value_rejected(self):
        with self.assertRaises(InvalidSecretError):
            self.store.upsert_secret(REPO_SCOPE, "API_KEY", "")
        self.redis.lock.assert_not_called()


class TestInstallationSecrets(SecretStoreTestCase):
    def test_installation_scope(self):
        self.add_installation()

        self.store.upsert_secret(INSTALLATION_SCOPE, "SHARED_TOKEN", "abc")
        self.store.upsert_secret(INSTALLATION_SCOPE, "SHARED_TOKEN", "def")

        values = self.store.decrypt_all(INSTALLATION_SCOPE)
        self.assertEqual([(v.key, v.value) for v in values], [("SHARED_TOKEN", "def")])
        self.assertEqual(self.store.list_secrets(REPO_SCOPE), [])

    def test_unknown_installation(self):
        with self.assertRaises(InstallationNotFoundError):
            self.store.upsert_secret(INSTALLATION_SCOPE, "SHARED_TOKEN", "abc")
        with self.assertRaises(InstallationNotFoundError):
            self.store.list_secrets(INSTALLATION_SCOPE)
        self.assertIsNone(self.db.github_installations.find_one({}))

    def test_decrypt_all_unknown_installation(self):
        with self.assertRaises(InstallationNotFoundError):
            self.store.decrypt_all(INSTALLATION_SCOPE)

    def test_decrypt_all_suspended_installation(self):
        self.add_installation()
        self.store.upsert_secret(INSTALLATION_SCOPE, "SHARED_TOKEN", "abc")
        GithubInstallationRepository(self.db).set_suspended(42, True)

        with self.assertRaises(InstallationNotFoundError):
            self.store.list_secrets(INSTALLATION_SCOPE)
        with self.assertRaises(InstallationNotFoundError):
            self.store.decrypt_all(INSTALLATION_SCOPE)

    def test_suspended_installation_is_not_writable(self):
        self.add_installation(suspended=True)

        with self.assertRaises(InstallationNotFoundError):
            self.store.upsert_secret(INSTALLATION_SCOPE, "SHARED_TOKEN", "abc")


if __name__ == "__main__":
    unittest.main()
