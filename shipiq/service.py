"""Entry point used by the API layer.

``ShipIQService`` wires the scanner, scorer, secret store, provisioner and
classifier together. Construct it once at startup with ``from_settings``.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from pymongo.database import Database

from shipiq.config import Settings, get_settings
from shipiq.exceptions import ConfigurationError
from shipiq.github_auth import TokenBroker
from shipiq.logging import setup_logging
from shipiq.models.classification import RunClassification
from shipiq.models.maturity import (
    InstallationOverview,
    MaturityReport,
    MaturitySignals,
    RepositoryOverview,
)
from shipiq.models.provisioning import ProvisioningResult
from shipiq.models.repository_config import ScanSnapshot
from shipiq.models.scan import GapReport, ScanResult
from shipiq.models.secret import (
    InstallationScope,
    MaskedSecret,
    RepositoryScope,
)
from shipiq.mongo import get_database
from shipiq.redis import get_redis
from shipiq.repositories import RepositoryConfigRepository
from shipiq.services import maturity_scorer, run_classifier
from shipiq.services.gap_scanner import GapScanner
from shipiq.services.github_webhook import GithubEventHandler
from shipiq.services.installation_service import InstallationService
from shipiq.services.remote_provisioner import RemoteProvisioner
from shipiq.services.retry_trigger import RetryTrigger
from shipiq.services.secret_cipher import SecretCipher
from shipiq.services.secret_store import SecretStore

logger = logging.getLogger(__name__)

SecretScope = Union[InstallationScope, RepositoryScope]


def split_full_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or "").strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"Repository name must be 'owner/repo', got {full_name!r}")
    return parts[0], parts[1]


class ShipIQService:
    def __init__(
        self,
        db: Database,
        broker: TokenBroker,
        scanner: GapScanner,
        secret_store: SecretStore,
        provisioner: RemoteProvisioner,
        installations: InstallationService,
        events: GithubEventHandler,
    ) -> None:
        self.broker = broker
        self.scanner = scanner
        self.secret_store = secret_store
        self.provisioner = provisioner
        self.installations = installations
        self.events = events
        self.configs = RepositoryConfigRepository(db)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        db: Optional[Database] = None,
        redis_client: Any = None,
    ) -> "ShipIQService":
        if db is None:
            db = get_database(
                settings.mongo.uri, settings.mongo.database, **settings.mongo.options
            )
        if redis_client is None:
            redis_client = get_redis(settings.redis.url)

        broker = TokenBroker.from_settings(settings, redis_client=redis_client)
        installations = InstallationService(db, broker)
        return cls(
            db=db,
            broker=broker,
            scanner=GapScanner.from_settings(settings, broker=broker),
            secret_store=SecretStore(
                db,
                SecretCipher.from_settings(settings),
                redis_client,
                lock_timeout=settings.redis.lock_timeout,
            ),
            provisioner=RemoteProvisioner(broker),
            installations=installations,
            events=GithubEventHandler(
                installations,
                RetryTrigger.from_settings(settings),
                webhook_secret=settings.github.webhook_secret,
            ),
        )

    # Scanning
    def scan(
        self,
        repo_url: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> GapReport:
        return self.scanner.scan(repo_url, branch=branch, installation_id=installation_id)

    def score(
        self, gaps: GapReport, signals: Optional[MaturitySignals] = None
    ) -> MaturityReport:
        return maturity_scorer.score(gaps, signals)

    def inspect(
        self,
        repo_url: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> ScanResult:
        return self.scanner.inspect_url(repo_url, branch=branch, installation_id=installation_id)

    def scan_repository(
        self, installation_id: int, full_name: str, branch: Optional[str] = None
    ) -> ScanSnapshot:
        """Scan, score and store the result as the repository's last scan."""
        self.installations.get_installation(installation_id)
        owner, repo = split_full_name(full_name)
        result = self.scanner.inspect(owner, repo, branch, installation_id=installation_id)
        snapshot = ScanSnapshot(
            gaps=result.gaps,
            maturity=self.score(result.gaps),
            branch=result.branch,
            stack=result.stack,
            env_vars=result.env_vars,
        )
        self.configs.save_last_scan(full_name, installation_id, snapshot)
        return snapshot

    def missing_secrets(self, installation_id: int, full_name: str) -> List[str]:
        """Variables the last scan found that no stored secret provides."""
        shared = self.secret_store.list_secrets(
            InstallationScope(installation_id=installation_id)
        )
        installation_keys = {s.key for s in shared}
        config = self.configs.find_by_full_name(full_name)
        if (
            config is None
            or config.installation_id != installation_id
            or config.last_scan is None
        ):
            return []
        stored = installation_keys | {s.key for s in config.secrets}
        return [name for name in config.last_scan.env_vars if name not in stored]

    def installation_overview(self, installation_id: int) -> InstallationOverview:
        installation = self.installations.get_installation(installation_id)
        configs = {c.full_name: c for c in self.configs.list_by_installation(installation_id)}

        rows: List[RepositoryOverview] = []
        # Configs of repositories removed from the installation are not listed.
        for name in installation.repositories:
            config = configs.get(name)
            scan = config.last_scan if config else None
            score = scan.maturity.total_score if scan else None
            rows.append(
                RepositoryOverview(
                    full_name=name,
                    maturity_score=score,
                    maturity_level=maturity_scorer.maturity_level(score),
                    last_scanned_at=scan.scanned_at if scan else None,
                )
            )

        analyzed = [r.maturity_score for r in rows if r.maturity_score is not None]
        average = round(sum(analyzed) / len(analyzed)) if analyzed else 0
        return InstallationOverview(
            installation_id=installation_id,
            total_repositories=len(rows),
            average_maturity=average,
            repositories=rows,
        )

    # Secrets
    def list_secrets(self, scope: SecretScope) -> List[MaskedSecret]:
        return self.secret_store.list_secrets(scope)

    def upsert_secret(self, scope: SecretScope, key: str, value: str) -> MaskedSecret:
        entry = self.secret_store.upsert_secret(scope, key, value)
        return MaskedSecret(key=entry.key, updated_at=entry.updated_at)

    def delete_secret(self, scope: SecretScope, key: str) -> bool:
        self.secret_store.delete_secret(scope, key)
        return True

    def sync_secrets(self, installation_id: int, repo_full_name: str) -> ProvisioningResult:
        """Push the repository's stored secrets to GitHub Actions."""
        self.installations.get_installation(installation_id)
        owner, repo = split_full_name(repo_full_name)

        secrets = self.secret_store.decrypt_all(
            RepositoryScope(full_name=repo_full_name, installation_id=installation_id)
        )
        if not secrets:
            return ProvisioningResult(
                repository=repo_full_name,
                success=False,
                secrets_synced=0,
                message="No secrets stored",
            )
        return self.provisioner.provision(installation_id, owner, repo, secrets)

    # CI
    def classify(self, observation: Mapping[str, Any]) -> RunClassification:
        """Classify either a raw ``workflow_job`` (with steps) or a
        ``{"job_status": ..., "failed_stage": ...}`` observation."""
        if "steps" in observation:
            return run_classifier.classify_completed_job(observation)
        return run_classifier.classify_run(
            observation.get("job_status"), observation.get("failed_stage")
        )

    def verify_webhook(self, signature: Optional[str], body: bytes) -> None:
        self.events.verify(signature, body)

    def handle_github_event(self, event: Optional[str], payload: Mapping[str, Any]) -> dict:
        return self.events.handle(event, dict(payload))


def create_service(settings: Optional[Settings] = None) -> ShipIQService:
    """Process start-up: configure logging and build the service from settings."""
    settings = settings or get_settings()
    setup_logging(settings.logging.level)
    service = ShipIQService.from_settings(settings)
    logger.info(
        "ShipIQ service ready (environment=%s, github_app_configured=%s)",
        settings.environment,
        settings.github_app_configured,
    )
    return service
