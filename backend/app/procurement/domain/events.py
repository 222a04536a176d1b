import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


class EventType(str, enum.Enum):
    MRN_CONVERTED_TO_MRF = "mrn_converted_to_mrf"
    MRF_SUBMITTED = "mrf_submitted"
    MRF_APPROVED_BY_EXECUTIVE = "mrf_approved_by_executive"
    MRF_REJECTED_BY_EXECUTIVE = "mrf_rejected_by_executive"
    MRF_SENT_TO_CHAIRMAN = "mrf_sent_to_chairman"
    MRF_APPROVED_BY_CHAIRMAN = "mrf_approved_by_chairman"
    MRF_REJECTED_BY_CHAIRMAN = "mrf_rejected_by_chairman"
    MRF_REJECTED_BY_SUPPLY_CHAIN = "mrf_rejected_by_supply_chain"
    PO_GENERATED = "po_generated"
    PO_SENT_TO_SUPPLY_CHAIN = "po_sent_to_supply_chain"
    PO_REJECTED_BY_SUPPLY_CHAIN = "po_rejected_by_supply_chain"
    PO_SIGNED = "po_signed"
    PO_SENT_TO_FINANCE = "po_sent_to_finance"
    GRN_CREATED = "grn_created"
    GRN_INSPECTED = "grn_inspected"
    GRN_SENT_TO_FINANCE = "grn_sent_to_finance"
    GRN_REJECTED = "grn_rejected"
    PAYMENT_PROCESSING = "payment_processing"
    PAYMENT_APPROVED_BY_CHAIRMAN = "payment_approved_by_chairman"
    PAYMENT_COMPLETED = "payment_completed"


@dataclass(frozen=True)
class DomainEvent:
    """A committed state transition, ready to be fanned out to users."""

    id: str
    type: EventType
    occurred_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionResult:
    record: Any
    events: tuple[DomainEvent, ...] = ()
