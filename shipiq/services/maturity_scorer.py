"""Weighted maturity score derived from a gap report.

A check earns its full weight only when its input is exactly ``True``;
there is no partial credit.
"""

from typing import Dict, List, Optional, Tuple

from shipiq.models.maturity import (
    MaturityCategory,
    MaturityCheck,
    MaturityLevel,
    MaturityReport,
    MaturitySignals,
)
from shipiq.models.scan import GapReport

HEALTHY_THRESHOLD = 80
NEEDS_IMPROVEMENT_THRESHOLD = 50

# category -> (max, [(check key, weight)])
MATURITY_MODEL: Dict[str, Tuple[int, List[Tuple[str, int]]]] = {
    "infrastructure": (30, [("dockerfile", 20), ("portExposure", 10)]),
    "cicd": (30, [("workflow", 20), ("testStep", 10)]),
    "documentation": (20, [("readme", 20)]),
    "quality": (20, [("tests", 20)]),
}


def _check_inputs(gaps: GapReport, signals: MaturitySignals) -> Dict[str, object]:
    return {
        "dockerfile": gaps.dockerfile,
        "portExposure": signals.port_exposure,
        "workflow": gaps.ci,
        "testStep": signals.test_step,
        "readme": gaps.readme,
        "tests": gaps.tests,
    }


def score(gaps: GapReport, signals: Optional[MaturitySignals] = None) -> MaturityReport:
    inputs = _check_inputs(gaps, signals or MaturitySignals())

    categories: Dict[str, MaturityCategory] = {}
    total = 0
    for name, (category_max, weights) in MATURITY_MODEL.items():
        checks = [
            MaturityCheck(key=key, passed=inputs[key] is True, weight=weight)
            for key, weight in weights
        ]
        category_score = min(
            sum(check.weight for check in checks if check.passed), category_max
        )
        categories[name] = MaturityCategory(
            max=category_max, score=category_score, checks=checks
        )
        total += category_score

    return MaturityReport(
        total_score=total,
        max_score=sum(category_max for category_max, _ in MATURITY_MODEL.values()),
        categories=categories,
    )


def maturity_level(total_score: Optional[int]) -> MaturityLevel:
    if total_score is None:
        return MaturityLevel.NOT_ANALYZED
    if total_score >= HEALTHY_THRESHOLD:
        return MaturityLevel.HEALTHY
    if total_score >= NEEDS_IMPROVEMENT_THRESHOLD:
        return MaturityLevel.NEEDS_IMPROVEMENT
    return MaturityLevel.CRITICAL
