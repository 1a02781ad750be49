"""Pushes decrypted secrets to GitHub as repository-level Actions secrets."""

import binascii
import logging
from base64 import b64encode
from typing import Any, Sequence

from nacl import encoding, exceptions as nacl_exceptions, public

from shipiq.exceptions import ConfigurationError, UpstreamApiError, UpstreamError
from shipiq.github_auth import TokenBroker
from shipiq.models.provisioning import ProvisioningResult
from shipiq.models.secret import SecretValue

logger = logging.getLogger(__name__)


def load_public_key(public_key_b64: Any) -> public.PublicKey:
    """Decode the base64 Curve25519 key GitHub returns for a repository."""
    try:
        return public.PublicKey(
            public_key_b64.encode("utf-8"), encoding.Base64Encoder()
        )
    except (AttributeError, binascii.Error, nacl_exceptions.CryptoError, ValueError) as exc:
        raise UpstreamApiError(
            "GitHub returned a malformed Actions public key",
            status_code=None,
            body=str(public_key_b64),
        ) from exc


def seal_secret(public_key: Any, secret_value: str) -> str:
    """Encrypt a value with libsodium's sealed box for the given repository key."""
    if not isinstance(public_key, public.PublicKey):
        public_key = load_public_key(public_key)
    sealed_box = public.SealedBox(public_key)
    encrypted = sealed_box.encrypt(secret_value.encode("utf-8"))
    return b64encode(encrypted).decode("utf-8")


class RemoteProvisioner:
    def __init__(self, broker: TokenBroker) -> None:
        self.broker = broker

    def provision(
        self,
        installation_id: int,
        owner: str,
        repo: str,
        secrets: Sequence[SecretValue],
    ) -> ProvisioningResult:
        """Upsert each secret on the repository, in order.

        Stops at the first failure and re-raises it with ``secrets_synced``
        set to the number already written; those are not rolled back.
        """
        if not installation_id:
            raise ConfigurationError("installation_id is required to provision secrets")
        if not owner or not repo:
            raise ConfigurationError("owner and repo are required to provision secrets")

        full_name = f"{owner}/{repo}"
        pending = [s for s in secrets if s.key and s.value]
        logger.info(
            "Provisioning %d repository secrets for %s", len(pending), full_name
        )

        synced = 0
        try:
            with self.broker.installation_client(installation_id) as gh:
                public_key = gh.get_actions_public_key(owner, repo)
                key_id = public_key.get("key_id")
                key = public_key.get("key")
                if not key_id or not key:
                    raise ConfigurationError(
                        f"GitHub returned no Actions public key for {full_name}"
                    )

                repository_key = load_public_key(key)
                for secret in pending:
                    encrypted_value = seal_secret(repository_key, secret.value)
                    gh.put_actions_secret(owner, repo, secret.key, encrypted_value, key_id)
                    synced += 1
                    logger.info("Synced repository secret %s for %s", secret.key, full_name)
        except UpstreamError as exc:
            exc.secrets_synced = synced
            logger.error(
                "Repository secret provisioning for %s stopped after %d of %d: %s",
                full_name,
                synced,
                len(pending),
                exc,
            )
            raise

        return ProvisioningResult(
            repository=full_name, success=True, secrets_synced=synced
        )
