import base64
import unittest
from unittest.mock import MagicMock

from nacl import encoding, public

from shipiq.exceptions import ConfigurationError, UpstreamApiError, UpstreamAuthError
from shipiq.models.secret import SecretValue
from shipiq.services.remote_provisioner import RemoteProvisioner, seal_secret
from tests.support import FakeGitHub

PUBLIC_KEY_PATH = "/repos/acme/widgets/actions/secrets/public-key"


def open_sealed(private_key, sealed_b64):
    return public.SealedBox(private_key).decrypt(base64.b64decode(sealed_b64)).decode()


class TestSealSecret(unittest.TestCase):
    def test_sealed_value_opens_with_private_key(self):
        private_key = public.PrivateKey.generate()
        public_b64 = private_key.public_key.encode(encoding.Base64Encoder()).decode()

        sealed = seal_secret(public_b64, "hunter2")

        self.assertNotIn("hunter2", sealed)
        self.assertEqual(open_sealed(private_key, sealed), "hunter2")

    def test_sealing_is_randomized(self):
        private_key = public.PrivateKey.generate()
        public_b64 = private_key.public_key.encode(encoding.Base64Encoder()).decode()

        self.assertNotEqual(seal_secret(public_b64, "same"), seal_secret(public_b64, "same"))


class TestRemoteProvisioner(unittest.TestCase):
    def setUp(self):
        self.private_key = public.PrivateKey.generate()
        self.github = FakeGitHub().add(
            "GET",
            PUBLIC_KEY_PATH,
            (
                200,
                {
                    "key_id": "568250167242549743",
                    "key": self.private_key.public_key.encode(encoding.Base64Encoder()).decode(),
                },
            ),
        )
        self.broker = MagicMock()
        self.broker.installation_client.side_effect = lambda _id: self.github.client()
        self.provisioner = RemoteProvisioner(self.broker)

    def test_pushes_each_secret(self):
        self.github.add("PUT", "/repos/acme/widgets/actions/secrets/DATABASE_URL", (201, ""))
        self.github.add("PUT", "/repos/acme/widgets/actions/secrets/API_KEY", (204, ""))

        result = self.provisioner.provision(
            42,
            "acme",
            "widgets",
            [SecretValue(key="DATABASE_URL", value="postgres://db"),
             SecretValue(key="API_KEY", value="k-123")],
        )

        self.assertTrue(result.success)
        self.assertEqual(result.secrets_synced, 2)
        self.assertEqual(result.repository, "acme/widgets")
        self.broker.installation_client.assert_called_once_with(42)

        bodies = self.github.json_bodies("PUT")
        self.assertEqual([b["key_id"] for b in bodies], ["568250167242549743"] * 2)
        self.assertEqual(
            [open_sealed(self.private_key, b["encrypted_value"]) for b in bodies],
            ["postgres://db", "k-123"],
        )
        self.assertEqual(
            self.github.paths("PUT"),
            [
                "/repos/acme/widgets/actions/secrets/DATABASE_URL",
                "/repos/acme/widgets/actions/secrets/API_KEY",
            ],
        )

    def test_skips_empty_entries(self):
        self.github.add("PUT", "/repos/acme/widgets/actions/secrets/API_KEY", (201, ""))

        result = self.provisioner.provision(
            42,
            "acme",
            "widgets",
            [SecretValue(key="EMPTY", value=""), SecretValue(key="API_KEY", value="k")],
        )

        self.assertEqual(result.secrets_synced, 1)
        self.assertEqual(len(self.github.paths("PUT")), 1)

    def test_partial_failure_reports_progress(self):
        self.github.add("PUT", "/repos/acme/widgets/actions/secrets/FIRST", (201, ""))
        self.github.add("PUT", "/repos/acme/widgets/actions/secrets/SECOND",
                        (500, {"message": "Server Error"}))

        with self.assertRaises(UpstreamApiError) as ctx:
            self.provisioner.provision(
                42,
                "acme",
                "widgets",
                [
                    SecretValue(key="FIRST", value="1"),
                    SecretValue(key="SECOND", value="2"),
                    SecretValue(key="THIRD", value="3"),
                ],
            )

        self.assertEqual(ctx.exception.secrets_synced, 1)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(len(self.github.paths("PUT")), 2)

    def test_public_key_rejected(self):
        github = FakeGitHub().add("GET", PUBLIC_KEY_PATH, (401, {"message": "Bad credentials"}))
        self.broker.installation_client.side_effect = lambda _id: github.client()

        with self.assertRaises(UpstreamAuthError) as ctx:
            self.provisioner.provision(42, "acme", "widgets", [SecretValue(key="A", value="1")])
        self.assertEqual(ctx.exception.secrets_synced, 0)

    def test_missing_public_key(self):
        github = FakeGitHub().add("GET", PUBLIC_KEY_PATH, (200, {"key_id": "1"}))
        self.broker.installation_client.side_effect = lambda _id: github.client()

        with self.assertRaises(ConfigurationError):
            self.provisioner.provision(42, "acme", "widgets", [SecretValue(key="A", value="1")])

    def test_malformed_public_key(self):
        for bad_key in ("bm90LWEta2V5", "%%not-base64%%", 12345):
            with self.subTest(key=bad_key):
                github = FakeGitHub().add("GET", PUBLIC_KEY_PATH, (200, {"key_id": "1", "key": bad_key}))
                self.broker.installation_client.side_effect = lambda _id, gh=github: gh.client()

                with self.assertRaises(UpstreamApiError) as ctx:
                    self.provisioner.provision(
                        42, "acme", "widgets", [SecretValue(key="A", value="1")]
                    )

                self.assertIsNone(ctx.exception.status_code)
                self.assertEqual(ctx.exception.secrets_synced, 0)
                self.assertEqual(github.paths("PUT"), [])

    def test_requires_target(self):
        with self.assertRaises(ConfigurationError):
            self.provisioner.provision(None, "acme", "widgets", [])
        with self.assertRaises(ConfigurationError):
            self.provisioner.provision(42, "", "widgets", [])
        self.broker.installation_client.assert_not_called()


if __name__ == "__main__":
    unittest.main()
