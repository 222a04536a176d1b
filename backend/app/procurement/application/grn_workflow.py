import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from app.procurement.application.base import (
    Clock,
    IdGenerator,
    WorkflowService,
    require_money,
    require_reason,
    require_text,
)
from app.procurement.application.policy import (
    PAYMENT_HANDLERS,
    WAREHOUSE_HANDLERS,
    require_role,
)
from app.procurement.application.ports import GoodsReceivedRepository
from app.procurement.domain.errors import (
    InvalidStageTransition,
    NotFound,
    ValidationError,
)
from app.procurement.domain.events import DomainEvent, EventType, TransitionResult
from app.procurement.domain.models import (
    Actor,
    GoodsReceivedNote,
    GRNItem,
    GRNStatus,
    ItemCondition,
    PaymentStatus,
    compute_grn_total,
)


logger = logging.getLogger(__name__)

OPEN_STATUSES = frozenset(
    {
        GRNStatus.PENDING_INSPECTION,
        GRNStatus.INSPECTED,
        GRNStatus.WITH_FINANCE,
        GRNStatus.PAYMENT_PROCESSING,
    }
)


@dataclass(frozen=True)
class GRNItemInput:
    name: str
    quantity_ordered: int
    quantity_received: int
    unit_price: Decimal
    condition: ItemCondition = ItemCondition.GOOD
    remarks: Optional[str] = None


@dataclass(frozen=True)
class CreateGRNCommand:
    po_number: str
    vendor_id: str
    vendor_name: str
    items: Sequence[GRNItemInput]
    warehouse_location: Optional[str] = None
    invoice_ref: Optional[str] = None


def build_items(items: Sequence[GRNItemInput]) -> List[GRNItem]:
    if not items:
        raise ValidationError("At least one received item is required")

    built = []
    for item in items:
        name = require_text(item.name, "Item name")
        if item.quantity_ordered < 0 or item.quantity_received < 0:
            raise ValidationError(f"Quantities for '{name}' cannot be negative")
        unit_price = require_money(item.unit_price, f"Unit price for '{name}'")
        built.append(
            GRNItem(
                name=name,
                quantity_ordered=item.quantity_ordered,
                quantity_received=item.quantity_received,
                unit_price=unit_price,
                condition=ItemCondition(item.condition),
                remarks=item.remarks,
            )
        )
    return built


class GoodsReceivedWorkflow(WorkflowService):
    """Goods receipt -> inspection -> finance -> payment.

    Inspection hands the note straight to finance; there is no separate
    approval step between the two.
    """

    entity_type = "goods_received_note"

    def __init__(
        self,
        repository: GoodsReceivedRepository,
        id_generator: IdGenerator,
        clock: Clock,
    ) -> None:
        super().__init__(id_generator, clock)
        self._repository = repository

    async def get(self, grn_id: str) -> GoodsReceivedNote:
        grn = await self._repository.get(grn_id)
        if grn is None:
            raise NotFound(f"Goods received note {grn_id} not found")
        return grn

    async def create_grn(self, command: CreateGRNCommand, actor: Actor) -> TransitionResult:
        require_role(actor, WAREHOUSE_HANDLERS, "record goods receipts")
        po_number = require_text(command.po_number, "PO number")
        vendor_name = require_text(command.vendor_name, "Vendor")
        items = build_items(command.items)

        now = self._clock()
        grn = GoodsReceivedNote(
            id=self._id_generator(),
            grn_number=await self._next_number(self._repository, "GRN", 3),
            po_number=po_number,
            vendor_id=command.vendor_id,
            vendor_name=vendor_name,
            status=GRNStatus.PENDING_INSPECTION,
            received_by=actor.name,
            created_at=now,
            updated_at=now,
            items=tuple(items),
            total_amount=compute_grn_total(items),
            payment_status=PaymentStatus.NONE,
            warehouse_location=command.warehouse_location,
            invoice_ref=command.invoice_ref,
        )
        await self._repository.add(grn)
        await self._audit(
            self._repository, actor, grn.id, "create",
            f"Recorded goods receipt {grn.grn_number} against {grn.po_number}",
            current=grn.status.value,
        )
        await self._repository.commit()
        return TransitionResult(
            record=grn,
            events=(self._event(EventType.GRN_CREATED, self._payload(grn)),),
        )

    async def inspect(self, grn_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, WAREHOUSE_HANDLERS, "inspect goods")
        grn = await self.get(grn_id)
        self._require_status(grn, GRNStatus.PENDING_INSPECTION, "inspect")

        now = self._clock()
        inspected = await self._move(
            grn, GRNStatus.INSPECTED, actor, "inspect",
            inspected_by=actor.name,
            inspection_date=now,
        )
        events: List[DomainEvent] = [
            self._event(EventType.GRN_INSPECTED, self._payload(inspected))
        ]

        forwarded = await self._forward(inspected, actor)
        events.append(self._event(EventType.GRN_SENT_TO_FINANCE, self._payload(forwarded)))

        await self._repository.commit()
        return TransitionResult(record=forwarded, events=tuple(events))

    async def forward_to_finance(self, grn_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, WAREHOUSE_HANDLERS, "forward goods receipts to finance")
        grn = await self.get(grn_id)
        forwarded = await self._forward(grn, actor)
        await self._repository.commit()
        return TransitionResult(
            record=forwarded,
            events=(self._event(EventType.GRN_SENT_TO_FINANCE, self._payload(forwarded)),),
        )

    async def process_payment(self, grn_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, PAYMENT_HANDLERS, "process payments")
        grn = await self.get(grn_id)
        self._require_status(grn, GRNStatus.WITH_FINANCE, "process payment")
        updated = await self._move(
            grn, GRNStatus.PAYMENT_PROCESSING, actor, "process_payment",
            payment_status=PaymentStatus.APPROVED,
            finance_processed_by=actor.name,
        )
        await self._repository.commit()
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.PAYMENT_PROCESSING, self._payload(updated)),),
        )

    async def complete_payment(self, grn_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, PAYMENT_HANDLERS, "complete payments")
        grn = await self.get(grn_id)
        self._require_status(grn, GRNStatus.PAYMENT_PROCESSING, "complete payment")
        updated = await self._move(
            grn, GRNStatus.COMPLETED, actor, "complete_payment",
            payment_status=PaymentStatus.PAID,
        )
        await self._repository.commit()
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.PAYMENT_COMPLETED, self._payload(updated)),),
        )

    async def reject(
        self, grn_id: str, reason: Optional[str], actor: Actor
    ) -> TransitionResult:
        require_role(actor, WAREHOUSE_HANDLERS | PAYMENT_HANDLERS, "reject goods receipts")
        grn = await self.get(grn_id)
        if grn.status not in OPEN_STATUSES:
            raise InvalidStageTransition(
                f"Cannot reject: goods received note {grn.grn_number} is {grn.status.value}"
            )
        updated = await self._move(
            grn, GRNStatus.REJECTED, actor, "reject",
            rejection_reason=require_reason(reason),
        )
        await self._repository.commit()
        logger.warning("Goods received note %s rejected: %s", grn_id, updated.rejection_reason)
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.GRN_REJECTED, self._payload(updated)),),
        )

    async def _forward(self, grn: GoodsReceivedNote, actor: Actor) -> GoodsReceivedNote:
        self._require_status(grn, GRNStatus.INSPECTED, "forward to finance")
        return await self._move(
            grn, GRNStatus.WITH_FINANCE, actor, "forward_to_finance",
            finance_received_date=self._clock(),
        )

    async def _move(
        self,
        grn: GoodsReceivedNote,
        target: GRNStatus,
        actor: Actor,
        action: str,
        **changes: Any,
    ) -> GoodsReceivedNote:
        updated = replace(grn, status=target, updated_at=self._clock(), **changes)
        await self._repository.write_if_stage(grn.id, grn.status, updated)
        await self._audit(
            self._repository, actor, grn.id, action,
            f"Goods received note {grn.grn_number}: {action.replace('_', ' ')}",
            previous=grn.status.value,
            current=target.value,
        )
        return updated

    @staticmethod
    def _require_status(grn: GoodsReceivedNote, status: GRNStatus, action: str) -> None:
        if grn.status != status:
            raise InvalidStageTransition(
                f"Cannot {action}: goods received note {grn.grn_number} is "
                f"{grn.status.value}, expected {status.value}"
            )

    @staticmethod
    def _payload(grn: GoodsReceivedNote) -> Dict[str, Any]:
        return {
            "grn_id": grn.id,
            "grn_number": grn.grn_number,
            "po_number": grn.po_number,
            "vendor_name": grn.vendor_name,
            "amount": grn.total_amount,
            "reason": grn.rejection_reason,
        }
