"""
Sweep reports.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

UNKNOWN_NETWORK = "unknown"


@dataclass
class NetworkSweepStats:
    """Per-network counters of a sweep."""

    network: str
    total: int = 0
    fixed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class SweepError:
    """Unexpected exception while processing one record."""

    record_id: int
    tx_hash: str | None
    error: str


@dataclass
class SkippedRecord:
    """Record left pending, with the reason."""

    record_id: int
    tx_hash: str | None
    reason: str


@dataclass
class SweepReport:
    """Aggregate report of one sweep run."""

    started_at: datetime
    dry_run: bool
    finished_at: datetime | None = None
    total: int = 0
    networks: dict[str, NetworkSweepStats] = field(default_factory=dict)
    errors: list[SweepError] = field(default_factory=list)
    skipped_records: list[SkippedRecord] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        """Run time in milliseconds (0 while running)."""
        if self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def stats_for(self, network: str | None) -> NetworkSweepStats:
        """Counters for network, created on first use."""
        key = network or UNKNOWN_NETWORK
        if key not in self.networks:
            self.networks[key] = NetworkSweepStats(network=key)
        return self.networks[key]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form for job results and scripts."""
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "total": self.total,
            "networks": {
                name: asdict(stats) for name, stats in self.networks.items()
            },
            "errors": [asdict(error) for error in self.errors],
            "skipped_records": [asdict(item) for item in self.skipped_records],
        }


@dataclass
class SweepResult:
    """Totals of a sweep plus its report."""

    fixed: int
    errors: int
    skipped: int
    failed: int
    report: SweepReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "fixed": self.fixed,
            "errors": self.errors,
            "skipped": self.skipped,
            "failed": self.failed,
            "report": self.report.to_dict(),
        }
