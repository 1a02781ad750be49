"""Deterministic classification of CI job outcomes.

Workflow step names are mapped to canonical stages by exact match, and a
failed stage maps to a failure type with a retry recommendation. Each call
is independent and never raises; unknown input degrades to
``UNKNOWN_FAILURE`` with low confidence.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from shipiq.models.classification import (
    CIStage,
    FailureType,
    RunClassification,
    RunStatus,
)

# Must match the step names in the generated workflow exactly.
STEP_TO_STAGE: Dict[str, CIStage] = {
    "Verify package.json exists": CIStage.VERIFY_PACKAGE,
    "Validate environment variable injection": CIStage.ENV_CHECK,
    "Install dependencies": CIStage.INSTALL_DEPS,
    "Run tests (non-blocking)": CIStage.TEST,
    "Build Docker image": CIStage.DOCKER_BUILD,
    "Run Docker container (platform smoke test)": CIStage.DOCKER_RUN,
    "Wait for startup window": CIStage.STARTUP_WAIT,
    "Verify container is running": CIStage.VERIFY_RUNNING,
    "Detect fatal startup errors (log inference)": CIStage.LOG_SCAN,
}

# stage -> (type, retryable, confidence)
FAILURE_TABLE: Dict[str, Tuple[FailureType, bool, float]] = {
    CIStage.ENV_CHECK.value: (FailureType.ENV_NOT_CONFIGURED, False, 0.95),
    CIStage.INSTALL_DEPS.value: (FailureType.DEPENDENCY_INSTALL_ERROR, True, 0.90),
    CIStage.TEST.value: (FailureType.TEST_FAILURE, True, 0.85),
    CIStage.DOCKER_BUILD.value: (FailureType.DOCKER_BUILD_ERROR, False, 0.90),
    CIStage.DOCKER_RUN.value: (FailureType.CONTAINER_BOOT_ERROR, False, 0.85),
    CIStage.VERIFY_RUNNING.value: (FailureType.CONTAINER_BOOT_ERROR, False, 0.85),
    CIStage.LOG_SCAN.value: (FailureType.RUNTIME_FATAL, False, 0.90),
}

UNKNOWN_FAILURE = (FailureType.UNKNOWN_FAILURE, False, 0.40)


def stage_for_step(step_name: Any) -> CIStage:
    if not isinstance(step_name, str):
        return CIStage.UNKNOWN
    return STEP_TO_STAGE.get(step_name, CIStage.UNKNOWN)


def classify_run(
    job_status: Optional[str], failed_stage: Optional[str] = None
) -> RunClassification:
    if job_status == RunStatus.SUCCESS.value:
        return RunClassification(
            status=RunStatus.SUCCESS,
            type=FailureType.SUCCESS,
            stage=CIStage.COMPLETED.value,
            retryable=False,
            confidence=1.0,
        )

    if isinstance(failed_stage, CIStage):
        stage = failed_stage.value
    elif failed_stage:
        stage = str(failed_stage)
    else:
        stage = None
    failure_type, retryable, confidence = FAILURE_TABLE.get(stage or "", UNKNOWN_FAILURE)
    return RunClassification(
        status=RunStatus.FAILURE,
        type=failure_type,
        stage=stage or CIStage.UNKNOWN.value,
        retryable=retryable,
        confidence=confidence,
    )


def _steps(job: Any) -> list:
    if not isinstance(job, Mapping):
        return []
    steps = job.get("steps")
    if not isinstance(steps, (list, tuple)):
        return []
    return [s for s in steps if isinstance(s, Mapping)]


def live_stage(job: Any) -> CIStage:
    """Stage of a job that is still running."""
    steps = _steps(job)
    if not steps:
        return CIStage.INITIALIZING

    active = next((s for s in steps if s.get("status") == "in_progress"), None)
    if active is None:
        active = next((s for s in steps if s.get("status") == "queued"), None)
    if active is None:
        return CIStage.FINALIZING
    return stage_for_step(active.get("name"))


def failed_stage(job: Any) -> CIStage:
    """Stage of the first failed step in declaration order."""
    for step in _steps(job):
        if step.get("conclusion") == "failure":
            return stage_for_step(step.get("name"))
    return CIStage.UNKNOWN


def classify_completed_job(job: Any) -> RunClassification:
    conclusion = job.get("conclusion") if isinstance(job, Mapping) else None
    return classify_run(conclusion, failed_stage(job).value)
