"""
Tests for the scheduler leader lock and locked runner
"""
import threading
import time
from unittest.mock import Mock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import InMemoryRedis
from contract_reminders.services.leader_lock import (
    LAST_CREATED_KEY,
    LAST_RUN_ERROR_KEY,
    LAST_RUN_KEY,
    LockedSchedulerRunner,
    RedlockLeaderLock,
    SchedulerMetrics,
    SimpleRedisLeaderLock,
    create_leader_lock,
    held_lock,
)

LOCK_KEY = "scheduler:leader_lock"


def simple_lock_factory(client, ttl_seconds=60):
    return lambda: SimpleRedisLeaderLock(client, LOCK_KEY, ttl_seconds)


class TestSimpleRedisLeaderLock:
    """Test the single-node SET NX lock"""
    
    def test_second_holder_cannot_acquire(self, fake_redis):
        """Test that a held key blocks other holders"""
        first = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="a")
        second = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="b")
        
        assert first.acquire() is True
        assert second.acquire() is False
        
        first.release()
        assert second.acquire() is True
    
    def test_release_keeps_other_owners_key(self, fake_redis):
        """Test that release never deletes a lock taken over by another holder"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="a")
        assert lock.acquire()
        
        fake_redis.set(LOCK_KEY, "b")
        lock.release()
        
        assert fake_redis.get(LOCK_KEY) == "b"
    
    def test_extend_refreshes_ttl(self, fake_redis):
        """Test that extend resets the TTL of an owned lock"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="a")
        lock.acquire()
        fake_redis.pexpire(LOCK_KEY, 1000)
        
        assert lock.extend() is True
        assert fake_redis.pttl(LOCK_KEY) > 30000
    
    def test_extend_fails_when_not_owned(self, fake_redis):
        """Test that extend refuses a lock owned by someone else"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="a")
        fake_redis.set(LOCK_KEY, "b")
        
        assert lock.extend() is False
    
    def test_owned_accepts_bytes(self):
        """Test owner comparison against a raw (bytes) client"""
        client = Mock()
        client.get.return_value = b"a"
        lock = SimpleRedisLeaderLock(client, LOCK_KEY, 60, token="a")
        
        assert lock.owned() is True


class TestCreateLeaderLock:
    """Test lock backend selection"""
    
    @patch('contract_reminders.services.leader_lock.Redlock')
    def test_redlock_backend(self, mock_redlock, coordination):
        """Test quorum lock construction over the configured masters"""
        lock = create_leader_lock(coordination, backend="redlock", key=LOCK_KEY, ttl_seconds=120)
        
        assert isinstance(lock, RedlockLeaderLock)
        kwargs = mock_redlock.call_args.kwargs
        assert kwargs["key"] == LOCK_KEY
        assert kwargs["masters"] == {coordination.redis}
        assert kwargs["auto_release_time"] == 120.0
        assert kwargs["raise_on_redis_errors"] is True
    
    @patch('contract_reminders.services.leader_lock.Redlock', side_effect=ValueError("no masters"))
    def test_falls_back_to_simple_lock(self, mock_redlock, coordination):
        """Test fallback when the quorum lock cannot be constructed"""
        lock = create_leader_lock(coordination, backend="redlock", key=LOCK_KEY, ttl_seconds=120)
        
        assert isinstance(lock, SimpleRedisLeaderLock)
        assert lock.client is coordination.redis
    
    def test_simple_backend(self, coordination):
        """Test explicit simple backend"""
        lock = create_leader_lock(coordination, backend="simple", key=LOCK_KEY, ttl_seconds=120)
        
        assert isinstance(lock, SimpleRedisLeaderLock)
        assert lock.ttl_ms == 120000
    
    @patch('contract_reminders.services.leader_lock.Redlock')
    def test_redlock_acquire_is_non_blocking(self, mock_redlock, coordination):
        """Test that the quorum lock is tried once without waiting"""
        mock_redlock.return_value.acquire.return_value = False
        lock = create_leader_lock(coordination, backend="redlock", key=LOCK_KEY, ttl_seconds=120)
        
        assert lock.acquire() is False
        mock_redlock.return_value.acquire.assert_called_once_with(blocking=False)


class TestHeldLock:
    """Test renewal and release around the locked block"""
    
    def test_renews_while_held(self, fake_redis):
        """Test that the renewer extends the lock periodically"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60)
        assert lock.acquire()
        
        with held_lock(lock, renew_interval_seconds=0.01) as renewer:
            time.sleep(0.2)
        
        assert renewer.renewals > 0
        assert renewer.running is False
        assert fake_redis.get(LOCK_KEY) is None
    
    def test_renewal_stops_when_ownership_lost(self, fake_redis):
        """Test that a taken-over lock is neither renewed nor deleted"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60, token="a")
        assert lock.acquire()
        
        with held_lock(lock, renew_interval_seconds=0.01) as renewer:
            fake_redis.set(LOCK_KEY, "other-instance")
            time.sleep(0.2)
        
        assert renewer.failed is True
        assert fake_redis.get(LOCK_KEY) == "other-instance"
    
    def test_renewal_error_does_not_interrupt_work(self):
        """Test that a failing renewal only stops the renewer"""
        lock = Mock()
        lock.key = LOCK_KEY
        lock.strategy = "mock"
        lock.extend.side_effect = RedisConnectionError("down")
        
        with held_lock(lock, renew_interval_seconds=0.01) as renewer:
            time.sleep(0.1)
            result = "finished"
        
        assert result == "finished"
        assert renewer.failed is True
        lock.release.assert_called_once()
    
    def test_releases_on_exception(self, fake_redis):
        """Test that the lock is released when the block raises"""
        lock = SimpleRedisLeaderLock(fake_redis, LOCK_KEY, 60)
        assert lock.acquire()
        
        with pytest.raises(RuntimeError):
            with held_lock(lock, renew_interval_seconds=10):
                raise RuntimeError("boom")
        
        assert fake_redis.get(LOCK_KEY) is None


class TestSchedulerMetrics:
    """Test last-run metrics keys"""
    
    def test_read_defaults(self, fake_redis):
        """Test metrics before any run"""
        assert SchedulerMetrics(fake_redis).read() == {
            "lastRun": None,
            "lastCreated": 0,
            "lastError": None,
        }
    
    def test_record_success(self, fake_redis):
        """Test success metrics"""
        metrics = SchedulerMetrics(fake_redis)
        metrics.record_success(4)
        
        stats = metrics.read()
        assert stats["lastCreated"] == 4
        assert stats["lastRun"] == fake_redis.get(LAST_RUN_KEY)
        assert fake_redis.get(LAST_CREATED_KEY) == "4"
    
    def test_record_error(self, fake_redis):
        """Test error metrics"""
        SchedulerMetrics(fake_redis).record_error(ValueError("db down"))
        
        assert fake_redis.get(LAST_RUN_ERROR_KEY) == "db down"
    
    def test_store_failure_is_swallowed(self):
        """Test that metrics writes never fail the run"""
        client = Mock()
        client.set.side_effect = RedisConnectionError("down")
        
        SchedulerMetrics(client).record_success(1)
        SchedulerMetrics(client).record_error(ValueError("x"))


class TestLockedSchedulerRunner:
    """Test locked scheduler runs"""
    
    def test_disabled_switch_skips(self, coordination):
        """Test that the default switch state skips the run"""
        work = Mock(return_value=[])
        runner = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        
        assert runner.acquire_and_run(work) == {"acquired": False, "skipped": True}
        work.assert_not_called()
    
    def test_enable_flag_overrides_disable(self, coordination, monkeypatch):
        """Test ENABLE_SCHEDULER=true"""
        monkeypatch.setenv("DISABLE_SCHEDULER", "true")
        monkeypatch.setenv("ENABLE_SCHEDULER", "true")
        runner = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        
        assert runner.acquire_and_run(lambda: ["r1"]) == {"acquired": True, "created": 1}
    
    def test_successful_run(self, coordination, scheduler_enabled):
        """Test a run that acquires, records metrics and releases"""
        runner = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        
        result = runner.acquire_and_run(lambda: ["r1", "r2", "r3"])
        
        assert result == {"acquired": True, "created": 3}
        assert coordination.redis.get(LOCK_KEY) is None
        assert SchedulerMetrics(coordination.redis).read()["lastCreated"] == 3
    
    def test_concurrent_runs_execute_work_once(self, coordination, scheduler_enabled):
        """Test mutual exclusion between two concurrent runners"""
        started = threading.Event()
        finish = threading.Event()
        calls = []
        
        def slow_work():
            calls.append("first")
            started.set()
            finish.wait(5)
            return ["r1"]
        
        def fast_work():
            calls.append("second")
            return []
        
        first = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        second = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        results = {}
        
        thread = threading.Thread(target=lambda: results.update(first=first.acquire_and_run(slow_work)))
        thread.start()
        assert started.wait(5)
        
        results["second"] = second.acquire_and_run(fast_work)
        finish.set()
        thread.join(5)
        
        assert calls == ["first"]
        assert results["first"] == {"acquired": True, "created": 1}
        assert results["second"] == {"acquired": False}
    
    def test_work_error_is_recorded_and_raised(self, coordination, scheduler_enabled):
        """Test that work failures release the lock and re-raise"""
        runner = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(coordination.redis))
        
        def failing_work():
            raise RuntimeError("database unavailable")
        
        with pytest.raises(RuntimeError, match="database unavailable"):
            runner.acquire_and_run(failing_work)
        
        assert coordination.redis.get(LOCK_KEY) is None
        assert SchedulerMetrics(coordination.redis).read()["lastError"] == "database unavailable"
    
    def test_coordination_failure_reports_error(self, coordination, scheduler_enabled):
        """Test that an unreachable store is reported, not raised"""
        lock = Mock()
        lock.acquire.side_effect = RedisConnectionError("Connection refused")
        work = Mock(return_value=[])
        runner = LockedSchedulerRunner(coordination, lock_factory=lambda: lock)
        
        result = runner.acquire_and_run(work)
        
        assert result["acquired"] is False
        assert "Connection refused" in result["error"]
        work.assert_not_called()
        lock.release.assert_not_called()
    
    def test_expired_lock_can_be_taken(self, scheduler_enabled):
        """Test that an abandoned lock becomes available after its TTL"""
        client = InMemoryRedis()
        client.set(LOCK_KEY, "crashed-instance", nx=True, px=20)
        time.sleep(0.05)
        
        coordination = Mock(redis=client)
        runner = LockedSchedulerRunner(coordination, lock_factory=simple_lock_factory(client))
        
        assert runner.acquire_and_run(lambda: []) == {"acquired": True, "created": 0}
