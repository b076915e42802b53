import threading
from datetime import timedelta

import pytest
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.sla.monitor import VIOLATIONS_TOPIC, SLAMonitor
from courier.sla.rules import SLARule, SLARuleKind, default_rules, rule_for
from courier.sla.scheduler import SweepScheduler
from courier.sla.violation import SLAViolation

_release_slow_rule = threading.Event()


class _SlowRule(SLARule):
    def is_violated_by(self, shipment, as_of):
        _release_slow_rule.wait(timeout=5)
        return False


@pytest.fixture()
def monitor(services):
    return SLAMonitor(courier, services, rules=default_rules(), rule_timeout=5)


def _violations():
    return current_domain.repository_for(SLAViolation)._dao.query.all().items


class TestPickupSweep:
    def test_overdue_pending_shipment_is_emitted_once(self, ops, clock, monitor, services):
        awb = ops.book()
        clock.advance(hours=25)

        first = monitor.sweep()
        second = monitor.sweep()

        assert first["rules"]["pickup"]["violations"] == 1
        assert first["rules"]["pickup"]["emitted"] == 1
        assert second["rules"]["pickup"]["emitted"] == 0
        assert second["rules"]["pickup"]["suppressed"] == 1

        broadcasts = services.realtime.on_topic(VIOLATIONS_TOPIC)
        assert len(broadcasts) == 1
        assert broadcasts[0]["type"] == "pickup_sla_violation"
        assert broadcasts[0]["awb"] == awb
        assert broadcasts[0]["threshold_hours"] == 24.0

    def test_emits_again_after_the_suppression_window(self, ops, clock, monitor):
        ops.book()
        clock.advance(hours=25)
        monitor.sweep()

        clock.advance(hours=23)
        assert monitor.sweep()["rules"]["pickup"]["emitted"] == 0

        clock.advance(hours=1)
        assert monitor.sweep()["rules"]["pickup"]["emitted"] == 1
        assert len(_violations()) == 2

    def test_window_follows_the_sweep_time_when_driven_manually(self, ops, clock, monitor):
        ops.book()
        start = clock()

        first = monitor.sweep(as_of=start + timedelta(hours=25))
        held = monitor.sweep(as_of=start + timedelta(hours=48, minutes=59))
        lapsed = monitor.sweep(as_of=start + timedelta(hours=60))

        assert first["rules"]["pickup"]["emitted"] == 1
        assert held["rules"]["pickup"]["suppressed"] == 1
        assert lapsed["rules"]["pickup"] == {
            "violations": 1,
            "emitted": 1,
            "suppressed": 0,
            "errors": [],
            "timed_out": False,
        }
        assert len(_violations()) == 2

    def test_marker_records_when_it_lapses(self, ops, clock, monitor, services):
        shipment = ops.shipment(ops.book())
        as_of = clock() + timedelta(hours=25)
        monitor.sweep(as_of=as_of)

        key = rule_for(monitor.rules, "pickup").marker_key(str(shipment.id))
        marker = services.cache.get(key)
        assert marker["detected_at"] == as_of.isoformat()
        assert marker["expires_at"] == (as_of + timedelta(hours=24)).isoformat()

    def test_marker_lives_for_the_rule_window(self, ops, clock, monitor, services):
        shipment = ops.shipment(ops.book())
        clock.advance(hours=30)
        monitor.sweep()

        key = rule_for(monitor.rules, "pickup").marker_key(str(shipment.id))
        assert services.cache.ttl(key) == timedelta(hours=24).total_seconds()

    def test_shipment_within_threshold_is_quiet(self, ops, clock, monitor):
        ops.book()
        clock.advance(hours=24)
        assert monitor.sweep()["rules"]["pickup"]["violations"] == 0


class TestViolationProcessing:
    def test_pickup_violation_alerts_merchant_and_is_audited(self, ops, clock, monitor, services):
        awb = ops.book()
        clock.advance(hours=25)
        monitor.sweep()

        mail = services.notifier.sent_to("merchant-1")[-1]
        assert mail["channel"] == "email"
        assert mail["title"] == "Pickup SLA Violation"
        assert mail["body"] == f"Shipment {awb} has not been picked up within 24h SLA. Please take action."

        audit = [e for e in services.audit.entries if e.action == "sla_violation"]
        assert audit[0].actor == "system"
        assert audit[0].description == f"Pickup SLA of 24 hours exceeded for shipment {awb}"

        violation = _violations()[0]
        assert violation.status == "processed"
        assert violation.elapsed_hours == 25.0

    def test_delivery_violation_alerts_every_party(self, ops, clock, monitor, services):
        awb = ops.booked_out_for_delivery()
        clock.advance(hours=73)
        monitor.sweep()

        delayed = services.notifier.sent_to("+8801712345678")[-1]
        assert delayed["title"] == "Shipment delayed"
        assert "1800-FASTX" in delayed["body"]

        push = services.notifier.sent_to("rider-1")[-1]
        assert push["channel"] == "push"
        assert push["body"] == f"Shipment {awb} has exceeded delivery SLA. Please prioritize."

        mail = services.notifier.sent_to("merchant-1")[-1]
        assert mail["title"] == "Delivery SLA Violation"
        assert "(3 days)" in mail["body"]

    def test_stalled_transit_is_internal_only(self, ops, clock, monitor, services):
        awb = ops.book()
        ops.collect(awb)
        ops.inbound("HUB-DHK", awb)
        ops.manifest("HUB-DHK", "HUB-CTG", awb)
        clock.advance(hours=49)
        sent_before = len(services.notifier.sent)

        report = monitor.sweep()

        assert report["rules"]["intransit"]["emitted"] == 1
        assert report["rules"]["delivery"]["violations"] == 0
        assert len(services.notifier.sent) == sent_before
        assert _violations()[0].status == "processed"

    def test_failed_notification_marks_violation_failed(self, ops, clock, monitor, services):
        ops.book()
        clock.advance(hours=25)
        services.notifier.configure(should_succeed=False)

        report = monitor.sweep()

        assert report["rules"]["pickup"]["emitted"] == 1
        violation = _violations()[0]
        assert violation.status == "failed"
        assert violation.failure_reason == "email: Notification delivery failed"
        assert monitor.queue_status() == {"waiting": 0, "active": 0, "completed": 0, "failed": 1, "total": 1}


class TestIsolation:
    def test_broken_rule_does_not_stop_the_others(self, ops, clock, services):
        pickup = rule_for(default_rules(), "pickup")
        broken = SLARule(
            kind=SLARuleKind.IN_TRANSIT,
            statuses=None,
            threshold=timedelta(hours=1),
            suppression=timedelta(hours=1),
            measure_idle=True,
            violation_label="broken",
        )
        ops.book()
        clock.advance(hours=25)

        report = SLAMonitor(courier, services, rules=(pickup, broken)).sweep()

        assert report["rules"]["pickup"]["emitted"] == 1
        assert report["rules"]["intransit"]["errors"]
        assert report["rules"]["intransit"]["emitted"] == 0

    def test_stuck_rule_times_out(self, ops, clock, services):
        pickup = rule_for(default_rules(), "pickup")
        stuck = _SlowRule(
            kind=SLARuleKind.DELIVERY,
            statuses=frozenset({"pending"}),
            threshold=timedelta(hours=1),
            suppression=timedelta(hours=1),
            measure_idle=False,
            violation_label="stuck",
        )
        ops.book()
        clock.advance(hours=25)
        _release_slow_rule.clear()
        try:
            report = SLAMonitor(courier, services, rules=(pickup, stuck), rule_timeout=0.5).sweep()
        finally:
            _release_slow_rule.set()

        assert report["rules"]["delivery"]["timed_out"] is True
        assert report["rules"]["pickup"]["emitted"] == 1


class TestInspection:
    def test_check_shipment_has_no_side_effects(self, ops, clock, monitor, services):
        awb = ops.book()
        clock.advance(hours=30)

        result = monitor.check_shipment(awb)

        assert result["is_violated"] is True
        assert result["violations"] == ["Pickup SLA exceeded"]
        assert _violations() == []
        assert services.realtime.on_topic(VIOLATIONS_TOPIC) == []

    def test_check_unknown_shipment(self, monitor):
        with pytest.raises(ObjectNotFoundError):
            monitor.check_shipment("FX20240304999999")

    def test_statistics_are_recomputed(self, ops, clock, monitor):
        ops.book()
        ops.book()
        clock.advance(hours=25)

        stats = monitor.statistics()

        assert stats["pickup_violations"] == {"count": 2, "threshold_hours": 24.0}
        assert stats["delivery_violations"]["count"] == 0
        assert stats["total_violations"] == 2
        assert stats["last_sweep"] is None
        assert stats["last_checked"] == clock().isoformat()

    def test_queue_counts_processed_records(self, ops, clock, monitor):
        ops.book()
        clock.advance(hours=25)
        monitor.sweep()
        assert monitor.queue_status() == {"waiting": 0, "active": 0, "completed": 1, "failed": 0, "total": 1}


def test_scheduler_tick_runs_one_sweep(ops, clock, monitor):
    ops.book()
    clock.advance(hours=25)
    scheduler = SweepScheduler(monitor, interval=60)

    report = scheduler.tick()

    assert scheduler.runs == 1
    assert report["rules"]["pickup"]["emitted"] == 1
    assert monitor.last_sweep == clock()
