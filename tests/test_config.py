# ============================================================================
# CONFIGURATION TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Scheduling and timeout defaults
# PURPOSE: Verify the stale threshold is derived from and exceeds the timeouts
# CREATED: 17 OCT 2026
# ============================================================================
"""
Configuration Tests

Covers:
1. Stale threshold derived from the longest timeout plus the margin
2. Overrides that would requeue items still inside their timeout are rejected
3. A requeuer built from the defaults leaves in-timeout RUNNING items alone

Run with:
    pytest tests/test_config.py -v
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from core.config import Defaults, SchedulingDefaults, TimeoutDefaults
from core.contracts import WorkItemStatus
from scheduler.requeuer import StaleWorkRequeuer
from tests.fakes import InMemoryStore

ENV_VARS = (
    "WORKER_TIMEOUT_SECONDS",
    "QUERY_CMR_TIMEOUT_SECONDS",
    "STALE_RUNNING_SECONDS",
    "STALE_MARGIN_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# STALE THRESHOLD
# ============================================================================


class TestStaleThreshold:
    def test_default_exceeds_worker_timeout(self, clean_env):
        defaults = Defaults.from_env()

        assert defaults.timeouts.worker_timeout_seconds == 7200
        assert defaults.scheduling.stale_running_seconds == 9000
        assert defaults.scheduling.stale_running_seconds > defaults.timeouts.worker_timeout_seconds

    def test_dataclass_defaults_are_consistent(self):
        defaults = Defaults()
        assert defaults.scheduling.stale_running_seconds > defaults.timeouts.longest_run_seconds

    def test_follows_worker_timeout(self, clean_env):
        clean_env.setenv("WORKER_TIMEOUT_SECONDS", "600")
        clean_env.setenv("STALE_MARGIN_SECONDS", "300")

        defaults = Defaults.from_env()

        assert defaults.timeouts.query_cmr_timeout_seconds == 600
        assert defaults.scheduling.stale_running_seconds == 900

    def test_longest_timeout_wins(self, clean_env):
        clean_env.setenv("QUERY_CMR_TIMEOUT_SECONDS", "10000")

        scheduling = SchedulingDefaults.from_env(TimeoutDefaults.from_env())

        assert scheduling.stale_running_seconds == 11800

    def test_explicit_override_is_kept(self, clean_env):
        clean_env.setenv("STALE_RUNNING_SECONDS", "8000")
        assert Defaults.from_env().scheduling.stale_running_seconds == 8000

    @pytest.mark.parametrize("stale", ["3600", "7200"])
    def test_override_inside_timeout_is_rejected(self, clean_env, stale):
        clean_env.setenv("STALE_RUNNING_SECONDS", stale)
        with pytest.raises(ValueError, match="must exceed"):
            Defaults.from_env()

    def test_requeuer_keeps_item_inside_timeout(self, clean_env):
        defaults = Defaults.from_env()
        store = InMemoryStore()
        store.add_job("job-1")
        started = datetime.now(timezone.utc) - timedelta(seconds=5400)
        item = store.add_running("job-1", 1, started_at=started)[0]

        requeuer = StaleWorkRequeuer(
            store,
            max_retries=defaults.scheduling.max_retries,
            stale_running_seconds=defaults.scheduling.stale_running_seconds,
        )

        assert asyncio.run(requeuer.requeue_stale_items()) == (0, 0)
        assert store.items[item.id].status == WorkItemStatus.RUNNING
