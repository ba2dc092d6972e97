"""
Main Orchestrator for Household Bills

This module ties together all the components:
1. Settings → storage backend → persistence adapter
2. Audit logger
3. The household store, rehydrated from the last snapshot
4. The calendar flow the UI drives (month navigation + search)

DESIGN DECISION: The store never knows where its bytes go. Everything
environment-specific (data directory, state key, logging) is decided
here, once, at startup.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from billbook.audit import AuditLogger, configure_logging
from billbook.calendar import shift_month, start_of_month
from billbook.config import Settings, get_settings
from billbook.models.views import DashboardView
from billbook.queries import DEFAULT_UPCOMING_LIMIT, build_dashboard
from billbook.services.persistence import SnapshotPersistence
from billbook.services.storage import (
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    SnapshotStorageInterface,
)
from billbook.store import HouseholdStore, default_snapshot

logger = structlog.get_logger(__name__)


class CalendarFlow:
    """
    The month being viewed and the current search query.

    This is transient presentation state: it is never persisted, and
    every call to dashboard() recomputes the view from the store.
    """

    def __init__(
        self,
        store: HouseholdStore,
        upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
        clock: Callable[[], date] = date.today,
    ):
        self._store = store
        self._upcoming_limit = upcoming_limit
        self._clock = clock
        self._anchor = start_of_month(clock())
        self._query = ""

    @property
    def anchor(self) -> date:
        """First day of the month being viewed."""
        return self._anchor

    @property
    def query(self) -> str:
        return self._query

    def set_query(self, query: str) -> None:
        self._query = query or ""

    def go_to_previous_month(self) -> date:
        self._anchor = shift_month(self._anchor, -1)
        return self._anchor

    def go_to_next_month(self) -> date:
        self._anchor = shift_month(self._anchor, 1)
        return self._anchor

    def go_to_today(self) -> date:
        self._anchor = start_of_month(self._clock())
        return self._anchor

    def dashboard(self) -> DashboardView:
        return build_dashboard(
            self._store.snapshot,
            self._anchor,
            query=self._query,
            today=self._clock(),
            upcoming_limit=self._upcoming_limit,
        )


def create_storage(settings: Settings, memory_only: bool = False) -> SnapshotStorageInterface:
    """Local JSON files normally; a dict when running memory-only."""
    if memory_only:
        return InMemorySnapshotStorage()
    return JsonFileSnapshotStorage(settings.storage.data_dir)


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[SnapshotStorageInterface] = None,
    clock: Callable[[], date] = date.today,
    memory_only: bool = False,
) -> tuple[HouseholdStore, CalendarFlow, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        settings: Application settings (defaults to get_settings()).
        storage: Storage backend override, e.g. for tests.
        clock: Returns "today".
        memory_only: Keep everything in memory (nothing is written to disk).

    Returns:
        (store, calendar_flow, audit_logger)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    configure_logging(
        level=app_settings.log_level,
        json_logs=app_settings.json_logs and not app_settings.debug_mode,
    )

    audit_logger = AuditLogger(history_size=app_settings.audit_history_size)
    if storage is None:
        storage = create_storage(settings, memory_only=memory_only)
    persistence = SnapshotPersistence(
        storage,
        key=settings.storage.state_key,
        audit_logger=audit_logger,
    )

    store = HouseholdStore(
        snapshot=default_snapshot(
            today=clock(),
            seed_sample_bills=app_settings.seed_sample_bills,
        ),
        persistence=persistence,
        audit_logger=audit_logger,
        clock=clock,
    )
    restored = store.rehydrate()
    logger.info(
        "app_started",
        environment=app_settings.environment,
        restored=restored,
        bill_count=len(store),
    )

    calendar_flow = CalendarFlow(
        store,
        upcoming_limit=app_settings.upcoming_limit,
        clock=clock,
    )
    return store, calendar_flow, audit_logger
