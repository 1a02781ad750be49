from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, Mapping, Optional

from shipiq.exceptions import ConfigurationError, WebhookSignatureError
from shipiq.services.installation_service import InstallationService
from shipiq.services.retry_trigger import RetryTrigger
from shipiq.services.run_classifier import classify_completed_job, live_stage

logger = logging.getLogger(__name__)


def verify_signature(secret: Optional[str], signature: Optional[str], body: bytes) -> None:
    if not secret:
        raise ConfigurationError("Webhook secret is not configured on the server.")

    if not signature or not signature.startswith("sha256="):
        raise WebhookSignatureError("Invalid webhook signature")

    digest = hmac.new(
        secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()

    expected = f"sha256={digest}"
    if not hmac.compare_digest(expected, signature):
        raise WebhookSignatureError("Webhook signature mismatch")


class GithubEventHandler:
    def __init__(
        self,
        installations: InstallationService,
        retry_trigger: RetryTrigger,
        webhook_secret: Optional[str] = None,
    ):
        self.installations = installations
        self.retry_trigger = retry_trigger
        self.webhook_secret = webhook_secret

    def verify(self, signature: Optional[str], body: bytes) -> None:
        verify_signature(self.webhook_secret, signature, body)

    def handle(self, event: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        if event == "workflow_job":
            return self._handle_workflow_job(payload)
        if event == "installation":
            return self._handle_installation(payload)
        if event == "installation_repositories":
            return self._handle_installation_repositories(payload)
        return {"status": "ignored", "reason": "event_not_handled"}

    def _handle_workflow_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        job = payload.get("workflow_job")
        if not isinstance(job, Mapping):
            job = {}
        repository = payload.get("repository")
        if not isinstance(repository, Mapping):
            repository = {}
        full_name = repository.get("full_name")

        if action == "in_progress":
            stage = live_stage(job)
            logger.info("Live CI stage for %s: %s", full_name, stage.value)
            return {"status": "processed", "action": "live_stage", "stage": stage.value}

        if action != "completed":
            return {"status": "ignored", "reason": f"unsupported_workflow_job_action: {action}"}

        classification = classify_completed_job(job)
        logger.info(
            "Workflow job %s for %s classified as %s (stage=%s, retryable=%s)",
            job.get("id"),
            full_name,
            classification.type.value,
            classification.stage,
            classification.retryable,
        )

        retry_triggered = False
        if job.get("conclusion") == "failure" and classification.retryable:
            retry_triggered = self.retry_trigger.trigger(repository, job, classification)

        return {
            "status": "processed",
            "action": "job_classified",
            "classification": classification.model_dump(mode="json"),
            "retry_triggered": retry_triggered,
        }

    def _handle_installation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        installation_id = (payload.get("installation") or {}).get("id")
        if not installation_id:
            return {"status": "ignored", "reason": "missing_installation_id"}

        if action in ("suspend", "unsuspend"):
            self.installations.set_suspended(installation_id, action == "suspend")
            return {
                "status": "processed",
                "action": f"installation_{action}ed",
                "installation_id": installation_id,
            }

        return {"status": "ignored", "reason": f"unsupported_installation_action: {action}"}

    def _handle_installation_repositories(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        installation_id = (payload.get("installation") or {}).get("id")
        if not installation_id:
            return {"status": "ignored", "reason": "missing_installation_id"}

        if action == "added":
            names = [r["full_name"] for r in payload.get("repositories_added") or []]
            self.installations.add_repositories(installation_id, names)
        elif action == "removed":
            names = [r["full_name"] for r in payload.get("repositories_removed") or []]
            self.installations.remove_repositories(installation_id, names)
        else:
            return {"status": "ignored", "reason": f"unsupported_repositories_action: {action}"}

        return {
            "status": "processed",
            "action": f"repositories_{action}",
            "installation_id": installation_id,
            "repositories": names,
        }
