"""Notifies an external automation endpoint that a CI job should be retried."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import httpx

from shipiq.config import Settings
from shipiq.models.classification import RunClassification

logger = logging.getLogger(__name__)


class RetryTrigger:
    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryTrigger":
        return cls(settings.retry.webhook_url, timeout=settings.retry.timeout)

    @staticmethod
    def build_payload(
        repository: Mapping[str, Any],
        job: Mapping[str, Any],
        classification: RunClassification,
    ) -> Dict[str, Any]:
        owner = repository.get("owner") or {}
        return {
            "repository": {
                "owner": owner.get("login"),
                "name": repository.get("name"),
                "full_name": repository.get("full_name"),
            },
            "job": {
                "id": job.get("id"),
                "name": job.get("name"),
                "conclusion": job.get("conclusion"),
            },
            "classification": classification.model_dump(mode="json"),
            "trigger": "classifier_retry",
            "triggered_at": datetime.now(timezone.utc).isoformat(),
        }

    def trigger(
        self,
        repository: Mapping[str, Any],
        job: Mapping[str, Any],
        classification: RunClassification,
    ) -> bool:
        """POST the retry request. Delivery failures are logged, not raised."""
        if not self.webhook_url:
            logger.warning(
                "Retry requested for %s but no retry webhook is configured",
                repository.get("full_name"),
            )
            return False

        payload = self.build_payload(repository, job, classification)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "Retry trigger for %s failed: %s", repository.get("full_name"), exc
            )
            return False

        logger.info(
            "Retry triggered for %s job %s (%s)",
            repository.get("full_name"),
            job.get("id"),
            classification.type.value,
        )
        return True
