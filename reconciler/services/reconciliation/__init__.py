"""Transaction status reconciliation."""

from reconciler.services.reconciliation.engine import (
    ReconciliationEngine,
    StatusCheckResult,
    SubmissionResult,
)
from reconciler.services.reconciliation.policy import (
    ReconciliationPolicy,
    RetryPolicy,
)
from reconciler.services.reconciliation.reports import SweepReport, SweepResult
from reconciler.services.reconciliation.task_runner import BackgroundTaskRunner

__all__ = [
    "BackgroundTaskRunner",
    "ReconciliationEngine",
    "ReconciliationPolicy",
    "RetryPolicy",
    "StatusCheckResult",
    "SubmissionResult",
    "SweepReport",
    "SweepResult",
]
