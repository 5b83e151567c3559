# ============================================================================
# WORK ITEM POLLER TESTS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Tests - Fair selection of ready work
# PURPOSE: Verify user/job fairness, batch allotment, counter self-healing
# CREATED: 16 OCT 2026
# ============================================================================
"""
Work Item Poller Tests

Covers:
1. Single-item path picks the user with the lightest running load
2. Paused jobs are never scheduled
3. Out-of-sync counters are recomputed and the pass yields nothing
4. Batch path: every small job is served despite a large job
5. Query-cmr granule limits
6. Store errors end the pass without raising

Run with:
    pytest tests/test_poller.py -v
"""

import asyncio
import random
import pytest

from core.contracts import JobStatus, WorkItemStatus
from scheduler.poller import WorkItemPoller, calculate_query_cmr_limit
from tests.fakes import SERVICE_ID, InMemoryStore

QUERY_CMR = "harmonyservices/query-cmr:stable"


# ============================================================================
# FIXTURES
# ============================================================================

def _make_poller(store, seed=0, page_size=2000):
    return WorkItemPoller(store, cmr_max_page_size=page_size, rng=random.Random(seed))


def _claimed_by_job(envelopes):
    counts = {}
    for envelope in envelopes:
        job_id = envelope.work_item.job_id
        counts[job_id] = counts.get(job_id, 0) + 1
    return counts


# ============================================================================
# SINGLE ITEM
# ============================================================================


class TestSingleItem:
    def test_no_work(self):
        store = InMemoryStore()
        assert asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID)) is None

    def test_claims_one_item(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=3)

        envelope = asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID))

        assert envelope.work_item.status == WorkItemStatus.RUNNING
        assert envelope.max_cmr_granules is None
        assert store.counts("job-1", SERVICE_ID) == (2, 1)

    def test_lightest_running_user_goes_first(self):
        store = InMemoryStore()
        store.add_job("alice-job", username="alice", ready=2)
        store.add_running("alice-job", 1)
        store.add_job("bob-job", username="bob", ready=2)

        envelope = asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID))
        assert envelope.work_item.job_id == "bob-job"

    def test_users_alternate(self):
        store = InMemoryStore()
        store.add_job("alice-job", username="alice", ready=5)
        store.add_job("bob-job", username="bob", ready=5)
        poller = _make_poller(store)

        async def take(n):
            return [await poller.get_work_from_database(SERVICE_ID) for _ in range(n)]

        envelopes = asyncio.run(take(4))
        assert _claimed_by_job(envelopes) == {"alice-job": 2, "bob-job": 2}

    def test_paused_job_is_skipped(self):
        store = InMemoryStore()
        store.add_job("paused", ready=3, status=JobStatus.PAUSED)

        assert asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID)) is None
        assert store.claims == []

    def test_other_service_is_ignored(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=3, service_id="ghcr.io/acme/other:2")

        assert asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID)) is None

    def test_out_of_sync_counts_are_recomputed(self):
        store = InMemoryStore()
        store.add_job("job-1")
        store.add_running("job-1", 2)
        store.set_counts("job-1", SERVICE_ID, ready=3, running=0)

        envelope = asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID))

        assert envelope is None
        assert store.recomputed == ["job-1"]
        assert store.counts("job-1", SERVICE_ID) == (0, 2)

    def test_store_error_returns_none(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=1)
        store.errors["next_ready_user"] = RuntimeError("connection reset")

        assert asyncio.run(_make_poller(store).get_work_from_database(SERVICE_ID)) is None


# ============================================================================
# BATCH
# ============================================================================


class TestBatch:
    def test_small_jobs_are_always_served(self):
        """A job with 50 ready items must not starve two jobs with one each."""
        big_job_counts = set()
        for seed in range(50):
            store = InMemoryStore()
            store.add_job("small-a", username="alice", ready=1)
            store.add_job("small-b", username="bob", ready=1)
            store.add_job("big", username="carol", ready=50)

            envelopes = asyncio.run(
                _make_poller(store, seed=seed).get_work_items_from_database(SERVICE_ID, 10)
            )
            claimed = _claimed_by_job(envelopes)

            assert claimed["small-a"] == 1
            assert claimed["small-b"] == 1
            assert 4 <= claimed["big"] <= 8
            assert len(envelopes) <= 10
            big_job_counts.add(claimed["big"])

        # the big job lands first in some shuffles and last in others
        assert 4 in big_job_counts
        assert 8 in big_job_counts

    def test_allotment_uses_ceiling(self):
        store = InMemoryStore()
        for n in range(3):
            store.add_job(f"job-{n}", username=f"user-{n}", ready=10)

        envelopes = asyncio.run(_make_poller(store).get_work_items_from_database(SERVICE_ID, 10))

        assert sorted(_claimed_by_job(envelopes).values()) == [3, 3, 4]

    def test_stops_when_batch_is_full(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=30)

        envelopes = asyncio.run(_make_poller(store).get_work_items_from_database(SERVICE_ID, 10))

        assert len(envelopes) == 10
        assert store.counts("job-1", SERVICE_ID) == (20, 10)

    def test_out_of_sync_job_is_recomputed_and_batch_continues(self):
        store = InMemoryStore()
        store.add_job("ghost", username="alice")
        store.add_running("ghost", 1)
        store.set_counts("ghost", SERVICE_ID, ready=4, running=0)
        store.add_job("real", username="bob", ready=3)

        envelopes = asyncio.run(_make_poller(store).get_work_items_from_database(SERVICE_ID, 10))

        assert _claimed_by_job(envelopes) == {"real": 3}
        assert "ghost" in store.recomputed
        assert store.counts("ghost", SERVICE_ID) == (0, 1)

    def test_store_error_returns_collected(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=3)
        store.errors["next_ready_items"] = RuntimeError("deadlock detected")

        envelopes = asyncio.run(_make_poller(store).get_work_items_from_database(SERVICE_ID, 10))
        assert envelopes == []

    def test_shuffle_is_a_permutation(self):
        poller = _make_poller(InMemoryStore(), seed=3)
        job_ids = [f"job-{n}" for n in range(20)]
        shuffled = poller.shuffle(list(job_ids))
        assert sorted(shuffled) == sorted(job_ids)


# ============================================================================
# QUERY-CMR LIMIT
# ============================================================================


class TestQueryCmrLimit:
    @pytest.mark.parametrize("granules,count,page,expected", [
        (5000, 1, 2000, 2000),
        (5000, 2, 2000, 2000),
        (5000, 3, 2000, 1000),
        (5000, 4, 2000, 0),
        (500, 1, 2000, 500),
        (0, 1, 2000, 0),
        (100, 0, 2000, 100),
    ])
    def test_limit(self, granules, count, page, expected):
        assert calculate_query_cmr_limit(granules, count, page) == expected

    def test_envelope_carries_limit(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=1, service_id=QUERY_CMR, num_input_granules=500)

        envelope = asyncio.run(_make_poller(store).get_work_from_database(QUERY_CMR))
        assert envelope.max_cmr_granules == 500

    def test_batch_envelopes_carry_limit(self):
        store = InMemoryStore()
        store.add_job("job-1", ready=1, service_id=QUERY_CMR, num_input_granules=5000)

        envelopes = asyncio.run(
            _make_poller(store, page_size=2000).get_work_items_from_database(QUERY_CMR, 5)
        )
        assert [e.max_cmr_granules for e in envelopes] == [2000]
