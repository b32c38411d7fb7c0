"""Models package for casegen."""

from casegen.models.config_models import GenerationConfig
from casegen.models.test_cases import (
    FailureKind,
    RecoveryFailure,
    RecoveryResult,
    RecoverySuccess,
    SourceFile,
    TestCaseSummary,
)

__all__ = [
    "FailureKind",
    "GenerationConfig",
    "RecoveryFailure",
    "RecoveryResult",
    "RecoverySuccess",
    "SourceFile",
    "TestCaseSummary",
]
