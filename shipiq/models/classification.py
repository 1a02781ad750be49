"""CI run classification value objects"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class CIStage(str, Enum):
    VERIFY_PACKAGE = "VERIFY_PACKAGE"
    ENV_CHECK = "ENV_CHECK"
    INSTALL_DEPS = "INSTALL_DEPS"
    TEST = "TEST"
    DOCKER_BUILD = "DOCKER_BUILD"
    DOCKER_RUN = "DOCKER_RUN"
    STARTUP_WAIT = "STARTUP_WAIT"
    VERIFY_RUNNING = "VERIFY_RUNNING"
    LOG_SCAN = "LOG_SCAN"
    # Synthetic stages
    INITIALIZING = "INITIALIZING"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    UNKNOWN = "UNKNOWN"


class FailureType(str, Enum):
    SUCCESS = "SUCCESS"
    ENV_NOT_CONFIGURED = "ENV_NOT_CONFIGURED"
    DEPENDENCY_INSTALL_ERROR = "DEPENDENCY_INSTALL_ERROR"
    TEST_FAILURE = "TEST_FAILURE"
    DOCKER_BUILD_ERROR = "DOCKER_BUILD_ERROR"
    CONTAINER_BOOT_ERROR = "CONTAINER_BOOT_ERROR"
    RUNTIME_FATAL = "RUNTIME_FATAL"
    UNKNOWN_FAILURE = "UNKNOWN_FAILURE"


class RunClassification(BaseModel):
    status: RunStatus
    type: FailureType
    stage: str
    retryable: bool
    confidence: float

    model_config = ConfigDict(frozen=True)
