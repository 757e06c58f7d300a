"""Background aggregation of raw usage statistics.

Each pass rebuilds the ``lastMonthStats`` field of every credential type
referenced by a usage snapshot created during the rolling window:

1. discovery: scan the window once and collect the referenced types
2. per type: scan the window again and count owners, credentials, issuers
   and using apps, then replace the type's statistics

The window is read through a restartable source (a callable returning a
fresh iterator) so no more than one snapshot is held in memory at a time.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from credtoolbox.sdk.errors import Outcome, internal_server_error, success
from credtoolbox.sdk.models import (
    NEVER,
    AggregationReport,
    CredentialTypeAggregatedStats,
    CredentialTypeWithContext,
    StoredUsageSnapshot,
    UsageCount,
    utc_now,
)
from credtoolbox.sdk.registry import TypeRegistry
from credtoolbox.sdk.store import DocumentCollection

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
DEFAULT_INTERVAL_SECONDS = 30
SECONDS_PER_DAY = 24 * 60 * 60

SnapshotSource = Callable[[], Iterable[StoredUsageSnapshot]]
AppInfoLookup = Callable[[str], dict[str, Any] | None]


@dataclass
class _TypeAccumulator:
    """Running counters for one credential type over one window scan."""
    owners: set[str] = field(default_factory=set)
    issuers: dict[str, set[str]] = field(default_factory=dict)
    using_apps: dict[str, set[str]] = field(default_factory=dict)
    total_credentials: int = 0
    last_created: float = NEVER
    last_used: float = NEVER

    def add_snapshot(self, snapshot: StoredUsageSnapshot, target: CredentialTypeWithContext) -> None:
        for owned in snapshot.owned_credentials:
            if target not in owned.types:
                continue
            self.owners.add(snapshot.user_id)
            self.total_credentials += 1
            if owned.issuer:
                self.issuers.setdefault(owned.issuer, set()).add(snapshot.user_id)
            self.last_created = max(self.last_created, owned.issuance_date)

        for used in snapshot.used_credentials:
            if target not in used.types:
                continue
            if used.app_did:
                self.using_apps.setdefault(used.app_did, set()).add(snapshot.user_id)
            self.last_used = max(self.last_used, used.used_at)

    def to_stats(self) -> CredentialTypeAggregatedStats:
        return CredentialTypeAggregatedStats(
            top_using_apps=[UsageCount(did=did, users=len(users)) for did, users in self.using_apps.items()],
            top_issuers=[UsageCount(did=did, users=len(users)) for did, users in self.issuers.items()],
            total_users=len(self.owners),
            total_credentials=self.total_credentials,
            last_created=self.last_created,
            last_used=self.last_used,
        )


class StatsAggregator:
    """Recomputes per-type statistics from the raw statistics collection."""

    def __init__(
        self,
        raw_stats: DocumentCollection,
        registry: TypeRegistry,
        window_days: int = DEFAULT_WINDOW_DAYS,
        clock: Callable[[], float] = utc_now,
        app_info: AppInfoLookup | None = None,
    ):
        """Initialize aggregator.

        Args:
            raw_stats: The ``raw-statistics`` document collection
            registry: Registry owning the credential types to update
            window_days: Length of the rolling window
            clock: Returns the current unix timestamp
            app_info: Optional DID -> ``{"name", "icon"}`` lookup for using apps
        """
        if raw_stats is None or registry is None:
            raise ValueError("Raw statistics collection and registry are required")
        if window_days <= 0:
            raise ValueError("Window must be at least one day")

        self.raw_stats = raw_stats
        self.registry = registry
        self.window_days = window_days
        self.clock = clock
        self.app_info = app_info

        self._pass_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: threading.Thread | None = None

    def window_source(self, window_start: float) -> SnapshotSource:
        """Restartable source over the snapshots created since ``window_start``."""
        def snapshots() -> Iterator[StoredUsageSnapshot]:
            for document in self.raw_stats.find({"createdAt": {"$gte": window_start}}):
                yield StoredUsageSnapshot.model_validate(document)
        return snapshots

    def run_once(self) -> Outcome[AggregationReport]:
        """Run one aggregation pass over the rolling window.

        Storage faults while scanning the window end the pass with a
        SERVER_ERROR outcome. Failures on a single type only mark that type
        as failed in the report.
        """
        with self._pass_lock:
            window_start = self.clock() - self.window_days * SECONDS_PER_DAY
            try:
                return success(self.aggregate(self.window_source(window_start)))
            except Exception as e:
                return internal_server_error(e)

    def aggregate(self, source: SnapshotSource) -> AggregationReport:
        logger.info("Starting statistics computation")
        report = AggregationReport()

        target_types: dict[CredentialTypeWithContext, None] = {}
        for snapshot in source():
            report.processed_snapshots += 1
            for owned in snapshot.owned_credentials:
                target_types.update(dict.fromkeys(owned.types))
            for used in snapshot.used_credentials:
                target_types.update(dict.fromkeys(used.types))

        for target in target_types:
            try:
                self._refresh_type(target, source, report)
            except Exception:
                logger.exception("Failed to refresh statistics for %s %s", target.context, target.short_type)
                report.failed_types.append(target)

        logger.info(
            "Statistics computation completed. Processed %d raw entries and updated %d credential types",
            report.processed_snapshots, report.updated_types,
        )
        return report

    def _refresh_type(self, target: CredentialTypeWithContext, source: SnapshotSource, report: AggregationReport) -> None:
        outcome = self.registry.get_by_context_and_type(target.context, target.short_type)
        if not outcome.ok:
            raise RuntimeError(outcome.error.message if outcome.error else "lookup failed")
        if outcome.data is None:
            # TODO: fetch and register EID chain types published outside this toolbox
            logger.debug("Credential type %s %s is not registered, skipping", target.context, target.short_type)
            report.skipped_types.append(target)
            return

        accumulator = _TypeAccumulator()
        for snapshot in source():
            accumulator.add_snapshot(snapshot, target)

        stats = accumulator.to_stats()
        self._enrich_apps(stats)
        logger.debug("Statistics for %s %s: %s", target.context, target.short_type, stats)

        if self.registry.set_stats(target.context, target.short_type, stats):
            report.updated_types += 1

    def _enrich_apps(self, stats: CredentialTypeAggregatedStats) -> None:
        if self.app_info is None:
            return
        for app in stats.top_using_apps:
            try:
                info = self.app_info(app.did)
            except Exception as e:
                logger.warning("Could not get app info for %s: %s", app.did, e)
                continue
            if info:
                app.name = info.get("name")
                app.icon = info.get("icon")

    def start(self, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> threading.Thread:
        """Run passes in a background thread, waiting ``interval_seconds`` after each one."""
        if interval_seconds <= 0:
            raise ValueError("Interval must be positive")
        if self._worker is not None and self._worker.is_alive():
            raise RuntimeError("Aggregation task already started")

        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._run_forever, args=(interval_seconds,), name="stats-aggregator", daemon=True
        )
        self._worker.start()
        return self._worker

    def stop(self, timeout: float | None = None) -> None:
        """Stop rescheduling and wait for the current pass to finish."""
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _run_forever(self, interval_seconds: float) -> None:
        while not self._stop_event.is_set():
            try:
                outcome = self.run_once()
                if outcome.error is not None:
                    logger.error("Statistics computation failed: %s", outcome.error.message)
            except Exception:
                logger.exception("Statistics computation failed")
            self._stop_event.wait(interval_seconds)
