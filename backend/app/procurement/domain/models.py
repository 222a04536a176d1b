import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence


HIGH_VALUE_THRESHOLD = Decimal("1000000")


class Role(str, enum.Enum):
    EMPLOYEE = "employee"
    PROCUREMENT = "procurement"
    FINANCE = "finance"
    EXECUTIVE = "executive"
    SUPPLY_CHAIN_DIRECTOR = "supply_chain_director"
    CHAIRMAN = "chairman"
    LOGISTICS = "logistics"
    WAREHOUSE = "warehouse"
    ADMIN = "admin"


class Urgency(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class MRFStage(str, enum.Enum):
    DRAFT = "draft"
    PENDING_EXECUTIVE_REVIEW = "pending_executive_review"
    PENDING_CHAIRMAN_REVIEW = "pending_chairman_review"
    APPROVED_FOR_PO = "approved_for_po"
    PO_GENERATED = "po_generated"
    PENDING_SUPPLY_CHAIN_SIGNATURE = "pending_supply_chain_signature"
    SIGNED = "signed"
    PENDING_FINANCE_PAYMENT = "pending_finance_payment"
    PAYMENT_PROCESSING = "payment_processing"
    PAYMENT_COMPLETED = "payment_completed"
    REJECTED_BY_EXECUTIVE = "rejected_by_executive"
    REJECTED_BY_CHAIRMAN = "rejected_by_chairman"
    REJECTED_BY_SUPPLY_CHAIN = "rejected_by_supply_chain"

    @property
    def is_rejected(self) -> bool:
        return self in REJECTED_MRF_STAGES


REJECTED_MRF_STAGES = frozenset(
    {
        MRFStage.REJECTED_BY_EXECUTIVE,
        MRFStage.REJECTED_BY_CHAIRMAN,
        MRFStage.REJECTED_BY_SUPPLY_CHAIN,
    }
)


class POStage(str, enum.Enum):
    DRAFT = "draft"
    SENT_TO_VENDORS = "sent_to_vendors"
    PENDING_SUPPLY_CHAIN_SIGNATURE = "pending_supply_chain_signature"
    SIGNED = "signed"
    SENT_TO_FINANCE = "sent_to_finance"


class GRNStatus(str, enum.Enum):
    PENDING_INSPECTION = "pending_inspection"
    INSPECTED = "inspected"
    WITH_FINANCE = "with_finance"
    PAYMENT_PROCESSING = "payment_processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentStatus(str, enum.Enum):
    NONE = "none"
    APPROVED = "approved"
    PAID = "paid"


class ItemCondition(str, enum.Enum):
    GOOD = "Good"
    PARTIAL = "Partial"
    DAMAGED = "Damaged"


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: Role
    department: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    actor_id: str
    actor_name: str
    approved: bool
    decided_at: datetime
    comment: Optional[str] = None


@dataclass(frozen=True)
class MaterialRequest:
    id: str
    title: str
    category: str
    description: str
    quantity: int
    justification: str
    requester_id: str
    requester_name: str
    department: Optional[str]
    stage: MRFStage
    created_at: datetime
    updated_at: datetime
    estimated_cost: Decimal = Decimal("0")
    urgency: Urgency = Urgency.MEDIUM
    rejection_reason: Optional[str] = None
    executive_decision: Optional[Decision] = None
    chairman_decision: Optional[Decision] = None
    po_id: Optional[str] = None
    po_number: Optional[str] = None


@dataclass(frozen=True)
class PurchaseOrder:
    id: str
    po_number: str
    mrf_id: str
    stage: POStage
    created_by: str
    created_at: datetime
    updated_at: datetime
    vendor_ids: Sequence[str] = field(default_factory=tuple)
    amount: Decimal = Decimal("0")
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    document_ref: Optional[str] = None
    rejection_reason: Optional[str] = None
    signed_by: Optional[str] = None


@dataclass(frozen=True)
class GRNItem:
    name: str
    quantity_ordered: int
    quantity_received: int
    unit_price: Decimal
    condition: ItemCondition = ItemCondition.GOOD
    remarks: Optional[str] = None

    @property
    def total_amount(self) -> Decimal:
        return self.quantity_received * self.unit_price


@dataclass(frozen=True)
class GoodsReceivedNote:
    id: str
    grn_number: str
    po_number: str
    vendor_id: str
    vendor_name: str
    status: GRNStatus
    received_by: str
    created_at: datetime
    updated_at: datetime
    items: Sequence[GRNItem] = field(default_factory=tuple)
    total_amount: Decimal = Decimal("0")
    payment_status: PaymentStatus = PaymentStatus.NONE
    warehouse_location: Optional[str] = None
    invoice_ref: Optional[str] = None
    inspected_by: Optional[str] = None
    inspection_date: Optional[datetime] = None
    finance_received_date: Optional[datetime] = None
    finance_processed_by: Optional[str] = None
    rejection_reason: Optional[str] = None


def compute_grn_total(items: Sequence[GRNItem]) -> Decimal:
    return sum((item.total_amount for item in items), Decimal("0"))


@dataclass(frozen=True)
class AuditEntry:
    id: str
    entity_type: str
    entity_id: str
    action: str
    user_id: str
    user_name: str
    user_role: str
    description: str
    timestamp: datetime
    changes: Optional[str] = None
