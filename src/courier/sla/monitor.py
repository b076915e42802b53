"""SLA monitor — the periodic sweep over open shipments.

Each rule is evaluated in its own worker thread with its own domain
context, so a slow or broken rule cannot hold up the others. Results are
then emitted sequentially from the calling thread:

    1. skip while the dedup marker for (rule, shipment) is live at ``as_of``
    2. set the marker to lapse one suppression window after ``as_of``
    3. record an SLAViolation (audit + notifications happen in its handler)
    4. broadcast on the ``sla-violations`` topic

``check_shipment`` and ``statistics`` recompute the rules without touching
markers or records.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from courier.services import Services
from courier.shipment.shipment import Shipment
from courier.sla.recording import RecordSLAViolation
from courier.sla.rules import SLARule, evaluate, rules_from_env
from courier.sla.violation import SLAViolation, ViolationStatus
from courier.utils.time import as_utc

logger = structlog.get_logger(__name__)

VIOLATIONS_TOPIC = "sla-violations"


def _marker_holds(marker, as_of: datetime) -> bool:
    """True while a dedup marker still suppresses the violation at ``as_of``.

    The window is judged against the sweep time so sweeps driven with an
    explicit ``as_of`` see markers lapse; the cache TTL only evicts.
    """
    if marker is None:
        return False
    expires_at = marker.get("expires_at") if isinstance(marker, dict) else None
    if not expires_at:
        return True
    return as_of < as_utc(datetime.fromisoformat(expires_at))


@dataclass
class RuleOutcome:
    rule: str
    violations: int = 0
    emitted: int = 0
    suppressed: int = 0
    errors: list = field(default_factory=list)
    timed_out: bool = False

    def to_dict(self) -> dict:
        return {
            "violations": self.violations,
            "emitted": self.emitted,
            "suppressed": self.suppressed,
            "errors": list(self.errors),
            "timed_out": self.timed_out,
        }


class SLAMonitor:
    def __init__(self, domain, services: Services, rules=None, rule_timeout: float = 60, max_workers: int = 3):
        self.domain = domain
        self.services = services
        self.rules = tuple(rules) if rules is not None else rules_from_env()
        self.rule_timeout = rule_timeout
        self.max_workers = max_workers
        self.last_sweep: datetime | None = None

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    def sweep(self, as_of: datetime | None = None) -> dict:
        """Run every rule once and emit new violations.

        Returns a per-rule report. A rule that raises or exceeds the
        timeout is reported and skipped; the remaining rules still emit.
        """
        as_of = as_utc(as_of) or self.services.now()
        outcomes = {rule.kind.value: RuleOutcome(rule=rule.kind.value) for rule in self.rules}

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sla-rule")
        try:
            futures = {executor.submit(self._find_violations, rule, as_of): rule for rule in self.rules}
            done, pending = wait(futures, timeout=self.rule_timeout)
        finally:
            # A stuck rule keeps its thread; the next sweep does not wait on it
            executor.shutdown(wait=False, cancel_futures=True)

        found: dict[str, list[Shipment]] = {}
        for future, rule in futures.items():
            outcome = outcomes[rule.kind.value]
            if future in pending:
                outcome.timed_out = True
                logger.warning("SLA rule timed out", rule=rule.kind.value, timeout=self.rule_timeout)
                continue
            exc = future.exception()
            if exc is not None:
                outcome.errors.append(str(exc))
                logger.warning("SLA rule evaluation failed", rule=rule.kind.value, error=str(exc))
                continue
            found[rule.kind.value] = future.result()
            outcome.violations = len(found[rule.kind.value])

        with self.domain.domain_context():
            for rule in self.rules:
                for shipment in found.get(rule.kind.value, []):
                    self._emit(rule, shipment, as_of, outcomes[rule.kind.value])

        self.last_sweep = as_of
        report = {name: outcome.to_dict() for name, outcome in outcomes.items()}
        logger.info(
            "SLA sweep completed",
            as_of=as_of.isoformat(),
            emitted=sum(o.emitted for o in outcomes.values()),
            suppressed=sum(o.suppressed for o in outcomes.values()),
        )
        return {"checked_at": as_of.isoformat(), "rules": report}

    def _find_violations(self, rule: SLARule, as_of: datetime) -> list[Shipment]:
        with self.domain.domain_context():
            candidates = current_domain.repository_for(Shipment).with_status(*rule.statuses)
            violating = []
            for shipment in candidates:
                try:
                    if rule.is_violated_by(shipment, as_of):
                        violating.append(shipment)
                except Exception as exc:
                    logger.warning(
                        "Skipping shipment in SLA evaluation",
                        rule=rule.kind.value,
                        awb=shipment.awb,
                        error=str(exc),
                    )
            return violating

    def _emit(self, rule: SLARule, shipment: Shipment, as_of: datetime, outcome: RuleOutcome) -> None:
        cache = self.services.cache
        key = rule.marker_key(str(shipment.id))
        try:
            if _marker_holds(cache.get(key), as_of):
                outcome.suppressed += 1
                return
            cache.set(
                key,
                {
                    "awb": shipment.awb,
                    "detected_at": as_of.isoformat(),
                    "expires_at": (as_of + rule.suppression).isoformat(),
                },
                ttl_seconds=int(rule.suppression.total_seconds()),
            )
            elapsed_hours = rule.elapsed(shipment, as_of).total_seconds() / 3600
            current_domain.process(
                RecordSLAViolation(
                    shipment_id=str(shipment.id),
                    rule=rule.kind.value,
                    threshold_hours=rule.threshold_hours,
                    elapsed_hours=round(elapsed_hours, 2),
                    detected_at=as_of,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            outcome.errors.append(f"{shipment.awb}: {exc}")
            logger.warning("SLA violation emission failed", rule=rule.kind.value, awb=shipment.awb, error=str(exc))
            return

        outcome.emitted += 1
        payload = {
            "type": f"{rule.kind.value}_sla_violation",
            "shipment_id": str(shipment.id),
            "awb": shipment.awb,
            "merchant_id": str(shipment.merchant_id),
            "status": shipment.status,
            "threshold_hours": rule.threshold_hours,
            "timestamp": as_of.isoformat(),
        }
        try:
            self.services.realtime.publish(VIOLATIONS_TOPIC, payload)
        except Exception as exc:
            logger.warning("SLA violation broadcast failed", awb=shipment.awb, error=str(exc))

    # ------------------------------------------------------------------
    # Read-only inspection
    # ------------------------------------------------------------------
    def check_shipment(self, awb: str, as_of: datetime | None = None) -> dict:
        """Evaluate all rules for one shipment. Raises ObjectNotFoundError."""
        as_of = as_utc(as_of) or self.services.now()
        shipment = current_domain.repository_for(Shipment).get_by_awb(awb)
        return evaluate(shipment, self.rules, as_of)

    def statistics(self, as_of: datetime | None = None) -> dict:
        """Shipments currently violating each rule, recomputed from the rows."""
        as_of = as_utc(as_of) or self.services.now()
        stats = {}
        for rule in self.rules:
            stats[f"{rule.kind.value}_violations"] = {
                "count": len(self._find_violations(rule, as_of)),
                "threshold_hours": rule.threshold_hours,
            }
        return {
            **stats,
            "total_violations": sum(entry["count"] for entry in stats.values()),
            "last_checked": as_of.isoformat(),
            "last_sweep": self.last_sweep.isoformat() if self.last_sweep else None,
        }

    def queue_status(self) -> dict:
        repo = current_domain.repository_for(SLAViolation)
        waiting = repo.count_with_status(ViolationStatus.QUEUED)
        completed = repo.count_with_status(ViolationStatus.PROCESSED)
        failed = repo.count_with_status(ViolationStatus.FAILED)
        return {
            "waiting": waiting,
            # Records are processed inside the recording unit of work
            "active": 0,
            "completed": completed,
            "failed": failed,
            "total": waiting + completed + failed,
        }
