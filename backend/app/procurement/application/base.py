import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

from app.procurement.application.ports import AuditLogRepository, NumberSequence
from app.procurement.domain.errors import ValidationError
from app.procurement.domain.events import DomainEvent, EventType
from app.procurement.domain.models import Actor, AuditEntry


IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]

logger = logging.getLogger(__name__)


class WorkflowService:
    """Shared plumbing for the workflow state machines.

    Subclasses own one record type. Every committed transition records an audit
    entry and returns the events it produced; dispatching them is the caller's
    job.
    """

    entity_type = "record"

    def __init__(self, id_generator: IdGenerator, clock: Clock) -> None:
        self._id_generator = id_generator
        self._clock = clock

    def _event(self, event_type: EventType, payload: Mapping[str, Any]) -> DomainEvent:
        return DomainEvent(
            id=self._id_generator(),
            type=event_type,
            occurred_at=self._clock(),
            payload=dict(payload),
        )

    async def _next_number(self, sequence: NumberSequence, prefix: str, width: int) -> str:
        """Yearly document numbers such as PO-2026-0001; the count restarts each year."""
        year = self._clock().year
        value = await sequence.next_sequence_value(f"{prefix}-{year}")
        return f"{prefix}-{year}-{value:0{width}d}"

    async def _audit(
        self,
        repository: AuditLogRepository,
        actor: Actor,
        entity_id: str,
        action: str,
        description: str,
        previous: Optional[str] = None,
        current: Optional[str] = None,
        entity_type: Optional[str] = None,
    ) -> None:
        changes = None
        if previous is not None or current is not None:
            changes = json.dumps({"from": previous, "to": current})
        entry = AuditEntry(
            id=self._id_generator(),
            entity_type=entity_type or self.entity_type,
            entity_id=entity_id,
            action=action,
            user_id=actor.id,
            user_name=actor.name,
            user_role=actor.role.value,
            description=description,
            timestamp=self._clock(),
            changes=changes,
        )
        await repository.add_audit_entry(entry)
        logger.info(
            "%s %s: %s by %s (%s -> %s)",
            entry.entity_type,
            entity_id,
            action,
            actor.id,
            previous,
            current,
        )


def require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_reason(comment: Optional[str]) -> str:
    return require_text(comment, "A rejection reason")


def require_money(value: Any, field_name: str) -> Decimal:
    """Parse a non-negative amount that fits the two-place money columns."""
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    if amount.normalize().as_tuple().exponent < -2:
        raise ValidationError(f"{field_name} cannot have more than two decimal places")
    return amount
