"""
Tests for the daily reminder scheduler
"""
from datetime import timedelta

import pytest

from conftest import NOW, FakeReminderQueue
from contract_reminders.db import Organization, Reminder, ReminderStatus
from contract_reminders.services.reminder_scheduler import (
    ReminderSchedulerService,
    run_daily_pass,
)
from contract_reminders.services.reminder_store import ReminderStore

WINDOWS = [30, 14, 7, 1]


class TestReminderSchedulerService:
    """Test one scheduling pass"""
    
    @pytest.fixture
    def scheduler(self, db_session, fake_queue):
        return ReminderSchedulerService(db_session, fake_queue)
    
    def test_only_future_windows_are_scheduled(self, scheduler, make_contract, fake_queue):
        """Test that a contract 5 days from expiry only gets the 1-day reminder"""
        contract = make_contract(expires_in=timedelta(days=5))
        
        created = scheduler.run(windows=WINDOWS, now=NOW)
        
        assert len(created) == 1
        reminder = created[0]
        assert reminder.contract_id == contract.id
        assert reminder.send_at == NOW + timedelta(days=4)
        assert reminder.status == ReminderStatus.ENQUEUED.value
        assert reminder.job_id == f"reminder-{reminder.id}"
        assert fake_queue.jobs[0]["delay"] == timedelta(days=4)
        assert fake_queue.jobs[0]["payload"] == {"contractId": str(contract.id)}
    
    def test_expired_contract_creates_nothing(self, scheduler, make_contract, fake_queue):
        """Test that windows more than an hour in the past are skipped"""
        make_contract(expires_in=timedelta(days=-2))
        
        assert scheduler.run(windows=WINDOWS, now=NOW) == []
        assert fake_queue.jobs == []
    
    def test_recent_past_send_time_is_delivered_now(self, scheduler, make_contract, fake_queue):
        """Test that a send time within the stale tolerance is enqueued without delay"""
        make_contract(expires_in=timedelta(days=1, minutes=-30))
        
        created = scheduler.run(windows=[1], now=NOW)
        
        assert len(created) == 1
        assert created[0].send_at == NOW - timedelta(minutes=30)
        assert fake_queue.jobs[0]["delay"] == timedelta(0)
    
    def test_all_windows_for_distant_expiry(self, scheduler, make_contract):
        """Test that every window in the future is created"""
        make_contract(expires_in=timedelta(days=31))
        
        created = scheduler.run(windows=WINDOWS, now=NOW)
        
        assert sorted(r.send_at for r in created) == [
            NOW + timedelta(days=1),
            NOW + timedelta(days=17),
            NOW + timedelta(days=24),
            NOW + timedelta(days=30),
        ]
    
    def test_contracts_beyond_horizon_are_ignored(self, scheduler, make_contract):
        """Test the query cutoff of the largest window plus one day"""
        make_contract(expires_in=timedelta(days=40))
        make_contract(expires_in=None)
        
        assert scheduler.run(windows=WINDOWS, now=NOW) == []
    
    def test_second_run_is_idempotent(self, scheduler, make_contract, db_session, fake_queue):
        """Test that re-running with the same now creates no duplicates"""
        make_contract(expires_in=timedelta(days=10))
        
        first = scheduler.run(windows=WINDOWS, now=NOW)
        second = scheduler.run(windows=WINDOWS, now=NOW)
        
        assert len(first) == 2
        assert second == []
        assert db_session.query(Reminder).count() == 2
        assert len(fake_queue.jobs) == 2
    
    def test_disabled_organization_is_skipped(self, scheduler, make_contract, db_session, organization):
        """Test that scheduler_enabled=False opts an organization out"""
        other = Organization(name="Other Org", scheduler_enabled=False)
        db_session.add(other)
        db_session.commit()
        
        make_contract(expires_in=timedelta(days=5))
        make_contract(expires_in=timedelta(days=5), org=other)
        
        created = scheduler.run(windows=WINDOWS, now=NOW)
        
        assert [r.organization_id for r in created] == [organization.id]
    
    def test_unset_flag_means_enabled(self, scheduler, make_contract, organization):
        """Test that a NULL scheduler_enabled keeps reminders on"""
        assert organization.scheduler_enabled is None
        make_contract(expires_in=timedelta(days=5))
        
        assert len(scheduler.run(windows=WINDOWS, now=NOW)) == 1
    
    def test_enqueue_failure_keeps_reminder_scheduled(self, db_session, make_contract):
        """Test that a queue outage does not abort the pass"""
        make_contract(expires_in=timedelta(days=5))
        make_contract(expires_in=timedelta(days=6))
        scheduler = ReminderSchedulerService(db_session, FakeReminderQueue(fail=True))
        
        created = scheduler.run(windows=WINDOWS, now=NOW)
        
        assert len(created) == 2
        for reminder in created:
            assert reminder.status == ReminderStatus.SCHEDULED.value
            assert reminder.job_id is None
    
    def test_reminders_copy_contract_scope(self, scheduler, make_contract, tenant):
        """Test organization and tenant are copied from the contract"""
        contract = make_contract(expires_in=timedelta(days=5), tenant_id=tenant.id)
        
        reminder = scheduler.run(windows=WINDOWS, now=NOW)[0]
        
        assert reminder.organization_id == contract.organization_id
        assert reminder.tenant_id == tenant.id
        assert reminder.channel == "email"
        assert reminder.attempts == 0


class TestRequeueScheduled:
    """Test recovery of reminders whose enqueue failed"""
    
    def test_requeue_after_outage(self, db_session, make_contract, fake_queue):
        """Test that scheduled reminders are enqueued on the next pass"""
        make_contract(expires_in=timedelta(days=5))
        ReminderSchedulerService(db_session, FakeReminderQueue(fail=True)).run(windows=WINDOWS, now=NOW)
        
        requeued = ReminderSchedulerService(db_session, fake_queue).requeue_scheduled(now=NOW)
        
        assert len(requeued) == 1
        assert requeued[0].status == ReminderStatus.ENQUEUED.value
        assert fake_queue.jobs[0]["delay"] == timedelta(days=4)
    
    def test_stale_reminders_are_not_requeued(self, db_session, make_contract, fake_queue):
        """Test that reminders past the tolerance stay scheduled"""
        contract = make_contract(expires_in=timedelta(days=5))
        ReminderStore(db_session).create(contract, send_at=NOW - timedelta(hours=3))
        
        requeued = ReminderSchedulerService(db_session, fake_queue).requeue_scheduled(now=NOW)
        
        assert requeued == []
        assert fake_queue.jobs == []
    
    def test_daily_pass_runs_requeue(self, db_session, make_contract, fake_queue):
        """Test that run_daily_pass includes the recovery step"""
        contract = make_contract(expires_in=timedelta(days=40))
        pending = ReminderStore(db_session).create(contract, send_at=NOW + timedelta(days=2))
        
        created = run_daily_pass(db_session, fake_queue, windows=WINDOWS, now=NOW, requeue=True)
        
        assert created == []
        db_session.refresh(pending)
        assert pending.status == ReminderStatus.ENQUEUED.value
    
    def test_daily_pass_without_requeue(self, db_session, make_contract, fake_queue):
        """Test that the recovery step can be switched off"""
        contract = make_contract(expires_in=timedelta(days=40))
        pending = ReminderStore(db_session).create(contract, send_at=NOW + timedelta(days=2))
        
        run_daily_pass(db_session, fake_queue, windows=WINDOWS, now=NOW, requeue=False)
        
        db_session.refresh(pending)
        assert pending.status == ReminderStatus.SCHEDULED.value
