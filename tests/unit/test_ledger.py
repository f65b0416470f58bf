"""
Unit tests for the ledger.
"""

import threading

import pytest

from stackctl.exceptions import LedgerCorruptError, LedgerFullError
from stackctl.ledger import JobLedger, Ledger
from stackctl.types.job import JobSnapshot


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestLedger:
    """Tests for the bounded TTL store."""

    def test_set_get_delete(self):
        """Test a value can be read back and is gone after delete."""
        ledger = Ledger(max_entries=10)

        ledger.set("k", "v", 0)
        assert ledger.get("k") == ("v", True)

        ledger.delete("k")
        assert ledger.get("k") == (None, False)

    def test_get_missing_key(self):
        """Test reading a key that was never written."""
        ledger = Ledger()

        assert ledger.get("nope") == (None, False)

    def test_delete_missing_key_is_noop(self):
        """Test deleting an unknown key does not raise."""
        ledger = Ledger()

        ledger.delete("nope")
        assert len(ledger) == 0

    def test_ttl_expiry(self):
        """Test an entry reads as a miss once its TTL has passed."""
        clock = FakeClock()
        ledger = Ledger(clock=clock)

        ledger.set("k", "v", ttl_seconds=5)
        assert ledger.get("k") == ("v", True)

        clock.advance(5)
        assert ledger.get("k") == ("v", True)

        clock.advance(0.01)
        assert ledger.get("k") == (None, False)

    def test_zero_ttl_never_expires(self):
        """Test ttl=0 entries survive arbitrarily long."""
        clock = FakeClock()
        ledger = Ledger(clock=clock)

        ledger.set("k", "v", ttl_seconds=0)
        clock.advance(10**9)

        assert ledger.get("k") == ("v", True)

    def test_capacity_rejects_new_key(self):
        """Test the N+1th distinct key is rejected."""
        ledger = Ledger(max_entries=3)
        for i in range(3):
            ledger.set(f"k{i}", "v")

        with pytest.raises(LedgerFullError):
            ledger.set("k3", "v")

        assert len(ledger) == 3
        assert ledger.get("k3") == (None, False)

    def test_capacity_allows_update(self):
        """Test updating an existing key at capacity succeeds."""
        ledger = Ledger(max_entries=3)
        for i in range(3):
            ledger.set(f"k{i}", "v")

        ledger.set("k1", "updated")

        assert ledger.get("k1") == ("updated", True)

    def test_capacity_after_delete(self):
        """Test deleting frees room for a new key."""
        ledger = Ledger(max_entries=1)
        ledger.set("a", "v")
        ledger.delete("a")

        ledger.set("b", "v")

        assert ledger.get("b") == ("v", True)

    def test_expired_entries_hold_capacity_until_purged(self):
        """Test purge_expired reclaims room held by expired entries."""
        clock = FakeClock()
        ledger = Ledger(max_entries=2, clock=clock)
        ledger.set("a", "v", ttl_seconds=1)
        ledger.set("b", "v", ttl_seconds=0)
        clock.advance(2)

        with pytest.raises(LedgerFullError):
            ledger.set("c", "v")

        assert ledger.purge_expired() == 1
        ledger.set("c", "v")
        assert sorted(ledger.keys()) == ["b", "c"]

    def test_unbounded_when_max_entries_zero(self):
        """Test a non-positive max_entries disables the limit."""
        ledger = Ledger(max_entries=0)
        for i in range(50):
            ledger.set(f"k{i}", "v")

        assert len(ledger) == 50

    def test_concurrent_writers_and_readers(self):
        """Test concurrent access neither loses writes nor corrupts reads."""
        ledger = Ledger(max_entries=0)
        errors: list[BaseException] = []

        def writer(prefix: str) -> None:
            try:
                for i in range(200):
                    ledger.set(f"{prefix}-{i}", str(i))
            except BaseException as e:
                errors.append(e)

        def reader() -> None:
            try:
                for i in range(200):
                    value, found = ledger.get(f"w0-{i}")
                    if found:
                        assert value == str(i)
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(f"w{n}",)) for n in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(ledger) == 800


class TestJobLedger:
    """Tests for the typed job view."""

    @pytest.fixture
    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id="job-1",
            sprite="sprite-1",
            priority=5,
            agent_query_rules=["queue=default"],
        )

    def test_round_trip(self, snapshot: JobSnapshot):
        """Test a snapshot reads back equal."""
        jobs = JobLedger(Ledger())

        jobs.set("job-1", snapshot)
        stored, found = jobs.get("job-1")

        assert found is True
        assert stored == snapshot

    def test_keys_are_prefixed(self, snapshot: JobSnapshot):
        """Test jobs are stored under job:<id>."""
        store = Ledger()
        JobLedger(store).set("job-1", snapshot)

        assert store.keys() == ["job:job-1"]

    def test_miss(self):
        """Test a missing job is (None, False) without error."""
        jobs = JobLedger(Ledger())

        assert jobs.get("job-1") == (None, False)

    def test_corrupt_entry_raises(self):
        """Test undeserializable data is an error, not a miss."""
        store = Ledger()
        store.set("job:job-1", "{not json")
        jobs = JobLedger(store)

        with pytest.raises(LedgerCorruptError):
            jobs.get("job-1")

    def test_wrong_shape_raises(self):
        """Test valid JSON of the wrong shape is also corrupt."""
        store = Ledger()
        store.set("job:job-1", '{"priority": "high"}')
        jobs = JobLedger(store)

        with pytest.raises(LedgerCorruptError):
            jobs.get("job-1")

    def test_ttl_applied(self, snapshot: JobSnapshot):
        """Test the configured TTL is applied to every snapshot."""
        clock = FakeClock()
        jobs = JobLedger(Ledger(clock=clock), ttl_seconds=30)

        jobs.set("job-1", snapshot)
        clock.advance(31)

        assert jobs.get("job-1") == (None, False)

    def test_capacity_error_propagates(self, snapshot: JobSnapshot):
        """Test a full ledger surfaces LedgerFullError to the caller."""
        jobs = JobLedger(Ledger(max_entries=1))
        jobs.set("job-1", snapshot)

        with pytest.raises(LedgerFullError):
            jobs.set("job-2", snapshot.model_copy(update={"id": "job-2"}))
