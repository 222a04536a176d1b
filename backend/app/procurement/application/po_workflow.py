import logging
from dataclasses import dataclass, replace
from datetime import date
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
    PO_ISSUERS,
    SUPPLY_CHAIN_SIGNERS,
    require_role,
)
from app.procurement.application.ports import (
    MaterialRequestRepository,
    PurchaseOrderRepository,
)
from app.procurement.domain.errors import (
    InvalidStageTransition,
    NotFound,
    ValidationError,
)
from app.procurement.domain.events import DomainEvent, EventType, TransitionResult
from app.procurement.domain.models import (
    Actor,
    MaterialRequest,
    MRFStage,
    POStage,
    PurchaseOrder,
)


logger = logging.getLogger(__name__)

# A rejected order goes back to Draft while its request waits at signature.
REISSUE_STAGES = (MRFStage.APPROVED_FOR_PO, MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE)
FORWARDABLE_STAGES = (MRFStage.PO_GENERATED, MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE)


@dataclass(frozen=True)
class PurchaseOrderInput:
    mrf_id: str
    vendor_ids: Sequence[str] = ()
    amount: Optional[Decimal] = None
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    document_ref: Optional[str] = None
    po_id: Optional[str] = None


class PurchaseOrderWorkflow(WorkflowService):
    """Purchase order sub-flow nested inside the material request lifecycle.

    Both repositories are expected to share one unit of work, so the order and
    its parent request are committed together.
    """

    entity_type = "purchase_order"

    def __init__(
        self,
        orders: PurchaseOrderRepository,
        requests: MaterialRequestRepository,
        id_generator: IdGenerator,
        clock: Clock,
    ) -> None:
        super().__init__(id_generator, clock)
        self._orders = orders
        self._requests = requests

    async def get(self, po_id: str) -> PurchaseOrder:
        order = await self._orders.get(po_id)
        if order is None:
            raise NotFound(f"Purchase order {po_id} not found")
        return order

    async def save_draft(self, command: PurchaseOrderInput, actor: Actor) -> PurchaseOrder:
        require_role(actor, PO_ISSUERS, "prepare purchase orders")
        request = await self._get_request(command.mrf_id)
        amount = self._coerce_amount(command.amount, request)

        if command.po_id:
            existing = await self._get_draft(command.po_id, request)
            order = replace(
                existing,
                vendor_ids=tuple(command.vendor_ids) or existing.vendor_ids,
                amount=amount,
                delivery_date=command.delivery_date or existing.delivery_date,
                payment_terms=command.payment_terms or existing.payment_terms,
                document_ref=command.document_ref or existing.document_ref,
                updated_at=self._clock(),
            )
            await self._orders.write_if_stage(order.id, POStage.DRAFT, order)
        else:
            if request.stage != MRFStage.APPROVED_FOR_PO:
                raise InvalidStageTransition(
                    f"Material request {request.id} is {request.stage.value}; "
                    "purchase orders can only be drafted once it is approved for PO"
                )
            order = await self._new_order(command, request, amount, actor, POStage.DRAFT)
            await self._orders.add(order)

        await self._audit(
            self._orders, actor, order.id, "save_draft",
            f"Saved draft purchase order {order.po_number}",
            current=order.stage.value,
        )
        await self._orders.commit()
        return order

    async def generate_po(
        self, command: PurchaseOrderInput, actor: Actor
    ) -> TransitionResult:
        require_role(actor, PO_ISSUERS, "generate purchase orders")
        request = await self._get_request(command.mrf_id)
        self._validate_issue(command)
        amount = self._coerce_amount(command.amount, request)
        reissue = bool(command.po_id) and request.po_id == command.po_id
        allowed = REISSUE_STAGES if reissue else (MRFStage.APPROVED_FOR_PO,)
        if request.stage not in allowed:
            raise InvalidStageTransition(
                f"Material request {request.id} is {request.stage.value}; "
                "a purchase order can only be generated once it is approved for PO"
            )

        if command.po_id:
            existing = await self._get_draft(command.po_id, request)
            order = replace(
                existing,
                stage=POStage.SENT_TO_VENDORS,
                vendor_ids=tuple(command.vendor_ids),
                amount=amount,
                delivery_date=command.delivery_date,
                payment_terms=command.payment_terms,
                document_ref=command.document_ref,
                rejection_reason=None,
                updated_at=self._clock(),
            )
            await self._orders.write_if_stage(order.id, POStage.DRAFT, order)
        else:
            order = await self._new_order(
                command, request, amount, actor, POStage.SENT_TO_VENDORS
            )
            await self._orders.add(order)

        if not reissue:
            request = await self._move_request(
                request,
                MRFStage.PO_GENERATED,
                actor,
                po_id=order.id,
                po_number=order.po_number,
            )

        await self._audit(
            self._orders, actor, order.id, "generate",
            f"Generated purchase order {order.po_number} for {request.id}",
            previous=POStage.DRAFT.value,
            current=order.stage.value,
        )
        await self._orders.commit()
        return TransitionResult(
            record=order,
            events=(self._event(EventType.PO_GENERATED, self._payload(order, request)),),
        )

    async def forward_to_supply_chain(self, po_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, PO_ISSUERS, "forward purchase orders")
        order = await self.get(po_id)
        self._require_stage(order, POStage.SENT_TO_VENDORS, "forward to supply chain")
        request = await self._get_request(order.mrf_id)
        self._require_current(order, request)
        if request.stage not in FORWARDABLE_STAGES:
            raise InvalidStageTransition(
                f"Material request {request.id} is {request.stage.value}; "
                "its purchase order cannot go to supply chain"
            )

        updated = await self._move_order(
            order, POStage.PENDING_SUPPLY_CHAIN_SIGNATURE, actor, "forward_to_supply_chain"
        )
        if request.stage == MRFStage.PO_GENERATED:
            request = await self._move_request(
                request, MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE, actor
            )
        await self._orders.commit()
        return TransitionResult(
            record=updated,
            events=(
                self._event(
                    EventType.PO_SENT_TO_SUPPLY_CHAIN, self._payload(updated, request)
                ),
            ),
        )

    async def supply_chain_decision(
        self,
        po_id: str,
        approve: bool,
        comment: Optional[str],
        actor: Actor,
    ) -> TransitionResult:
        require_role(actor, SUPPLY_CHAIN_SIGNERS, "sign purchase orders")
        order = await self.get(po_id)
        self._require_stage(
            order, POStage.PENDING_SUPPLY_CHAIN_SIGNATURE, "record a supply chain decision"
        )
        request = await self._get_request(order.mrf_id)
        self._require_current(order, request)

        if not approve:
            reason = require_reason(comment)
            updated = await self._move_order(
                order, POStage.DRAFT, actor, "supply_chain_reject",
                rejection_reason=reason,
            )
            await self._orders.commit()
            logger.warning("Purchase order %s rejected by supply chain: %s", po_id, reason)
            return TransitionResult(
                record=updated,
                events=(
                    self._event(
                        EventType.PO_REJECTED_BY_SUPPLY_CHAIN,
                        self._payload(updated, request),
                    ),
                ),
            )

        if request.stage != MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE:
            raise InvalidStageTransition(
                f"Material request {request.id} is {request.stage.value}, "
                "expected pending_supply_chain_signature"
            )

        events: List[DomainEvent] = []
        signed = await self._move_order(
            order, POStage.SIGNED, actor, "supply_chain_sign", signed_by=actor.name
        )
        request = await self._move_request(request, MRFStage.SIGNED, actor)
        events.append(self._event(EventType.PO_SIGNED, self._payload(signed, request)))

        sent = await self._move_order(signed, POStage.SENT_TO_FINANCE, actor, "send_to_finance")
        request = await self._move_request(request, MRFStage.PENDING_FINANCE_PAYMENT, actor)
        events.append(self._event(EventType.PO_SENT_TO_FINANCE, self._payload(sent, request)))

        await self._orders.commit()
        return TransitionResult(record=sent, events=tuple(events))

    async def _new_order(
        self,
        command: PurchaseOrderInput,
        request: MaterialRequest,
        amount: Decimal,
        actor: Actor,
        stage: POStage,
    ) -> PurchaseOrder:
        now = self._clock()
        return PurchaseOrder(
            id=self._id_generator(),
            po_number=await self._next_number(self._orders, "PO", 4),
            mrf_id=request.id,
            stage=stage,
            created_by=actor.id,
            created_at=now,
            updated_at=now,
            vendor_ids=tuple(command.vendor_ids),
            amount=amount,
            delivery_date=command.delivery_date,
            payment_terms=command.payment_terms,
            document_ref=command.document_ref,
        )

    async def _get_request(self, mrf_id: str) -> MaterialRequest:
        request = await self._requests.get(mrf_id)
        if request is None:
            raise NotFound(f"Material request {mrf_id} not found")
        return request

    async def _get_draft(self, po_id: str, request: MaterialRequest) -> PurchaseOrder:
        order = await self.get(po_id)
        if order.mrf_id != request.id:
            raise ValidationError(
                f"Purchase order {po_id} belongs to material request {order.mrf_id}"
            )
        self._require_stage(order, POStage.DRAFT, "edit")
        return order

    async def _move_order(
        self,
        order: PurchaseOrder,
        target: POStage,
        actor: Actor,
        action: str,
        **changes: Any,
    ) -> PurchaseOrder:
        updated = replace(order, stage=target, updated_at=self._clock(), **changes)
        await self._orders.write_if_stage(order.id, order.stage, updated)
        await self._audit(
            self._orders, actor, order.id, action,
            f"Purchase order {order.po_number}: {action.replace('_', ' ')}",
            previous=order.stage.value,
            current=target.value,
        )
        return updated

    async def _move_request(
        self,
        request: MaterialRequest,
        target: MRFStage,
        actor: Actor,
        **changes: Any,
    ) -> MaterialRequest:
        updated = replace(request, stage=target, updated_at=self._clock(), **changes)
        await self._requests.write_if_stage(request.id, request.stage, updated)
        logger.info(
            "Material request %s moved %s -> %s by purchase order flow",
            request.id,
            request.stage.value,
            target.value,
        )
        return updated

    @staticmethod
    def _validate_issue(command: PurchaseOrderInput) -> None:
        if not [vendor for vendor in command.vendor_ids if vendor and vendor.strip()]:
            raise ValidationError("At least one vendor is required")
        if command.delivery_date is None:
            raise ValidationError("Delivery date is required")
        require_text(command.payment_terms, "Payment terms")
        require_text(command.document_ref, "A purchase order document")

    @staticmethod
    def _coerce_amount(value: Optional[Decimal], request: MaterialRequest) -> Decimal:
        if value is None:
            return request.estimated_cost
        return require_money(value, "Amount")

    @staticmethod
    def _require_current(order: PurchaseOrder, request: MaterialRequest) -> None:
        if request.po_id != order.id:
            raise InvalidStageTransition(
                f"Purchase order {order.po_number} is no longer the active order "
                f"for material request {request.id}"
            )

    @staticmethod
    def _require_stage(order: PurchaseOrder, stage: POStage, action: str) -> None:
        if order.stage != stage:
            raise InvalidStageTransition(
                f"Cannot {action}: purchase order {order.po_number} is "
                f"{order.stage.value}, expected {stage.value}"
            )

    @staticmethod
    def _payload(order: PurchaseOrder, request: MaterialRequest) -> Dict[str, Any]:
        return {
            "po_id": order.id,
            "po_number": order.po_number,
            "mrf_id": request.id,
            "mrf_title": request.title,
            "amount": order.amount,
            "reason": order.rejection_reason,
            "requester_id": request.requester_id,
            "vendor_ids": list(order.vendor_ids),
        }
