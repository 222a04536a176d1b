import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from app.procurement.application.base import (
    Clock,
    IdGenerator,
    WorkflowService,
    require_money,
    require_reason,
    require_text,
)
from app.procurement.application.policy import (
    CHAIRMAN_REVIEWERS,
    EXECUTIVE_REVIEWERS,
    PAYMENT_HANDLERS,
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
    Unauthorized,
    ValidationError,
)
from app.procurement.domain.events import EventType, TransitionResult
from app.procurement.domain.models import (
    HIGH_VALUE_THRESHOLD,
    Actor,
    Decision,
    MaterialRequest,
    MRFStage,
    POStage,
    Role,
    Urgency,
)


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "category",
        "description",
        "quantity",
        "justification",
        "estimated_cost",
        "urgency",
    }
)

# Orders still out with vendors or awaiting signature when their request is withdrawn.
WITHDRAWABLE_ORDER_STAGES = (POStage.SENT_TO_VENDORS, POStage.PENDING_SUPPLY_CHAIN_SIGNATURE)


@dataclass(frozen=True)
class MaterialRequestInput:
    title: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    justification: Optional[str] = None
    estimated_cost: Optional[Decimal] = None
    urgency: Urgency = Urgency.MEDIUM


def _coerce_cost(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return require_money(value, "Estimated cost")


def _coerce_urgency(value: Any) -> Urgency:
    if isinstance(value, Urgency):
        return value
    try:
        return Urgency(str(value).capitalize())
    except ValueError:
        raise ValidationError(f"Unknown urgency '{value}'")


def validate_for_submission(request: MaterialRequest) -> None:
    require_text(request.title, "Title")
    require_text(request.category, "Category")
    require_text(request.description, "Description")
    require_text(request.justification, "Justification")
    if request.quantity is None or request.quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    if request.estimated_cost < 0:
        raise ValidationError("Estimated cost cannot be negative")


class MaterialRequestWorkflow(WorkflowService):
    """Material request approval chain.

    Draft -> PendingExecutiveReview -> (PendingChairmanReview ->) ApprovedForPO.
    Requests above the high-value threshold always pass through the chairman.
    Later stages (PO, signature, finance) are advanced by the purchase order
    sub-flow and the payment steps below.
    """

    entity_type = "material_request"

    def __init__(
        self,
        repository: MaterialRequestRepository,
        id_generator: IdGenerator,
        clock: Clock,
        high_value_threshold: Decimal = HIGH_VALUE_THRESHOLD,
        orders: Optional[PurchaseOrderRepository] = None,
    ) -> None:
        super().__init__(id_generator, clock)
        self._repository = repository
        self._threshold = high_value_threshold
        self._orders = orders

    async def get(self, mrf_id: str) -> MaterialRequest:
        request = await self._repository.get(mrf_id)
        if request is None:
            raise NotFound(f"Material request {mrf_id} not found")
        return request

    async def save_draft(
        self, command: MaterialRequestInput, actor: Actor
    ) -> MaterialRequest:
        request = self._build(command, actor, MRFStage.DRAFT)
        await self._repository.add(request)
        await self._audit(
            self._repository, actor, request.id, "save_draft",
            f"Saved draft material request: {request.title or request.id}",
            current=request.stage.value,
        )
        await self._repository.commit()
        return request

    async def submit(
        self, command: MaterialRequestInput, actor: Actor
    ) -> TransitionResult:
        request = self._build(command, actor, MRFStage.PENDING_EXECUTIVE_REVIEW)
        validate_for_submission(request)

        await self._repository.add(request)
        await self._audit(
            self._repository, actor, request.id, "submit",
            f"Submitted material request: {request.title}",
            previous=MRFStage.DRAFT.value,
            current=request.stage.value,
        )
        await self._repository.commit()
        return TransitionResult(
            record=request,
            events=(self._event(EventType.MRF_SUBMITTED, self._payload(request)),),
        )

    async def submit_draft(self, mrf_id: str, actor: Actor) -> TransitionResult:
        request = await self.get(mrf_id)
        self._require_owner(request, actor)
        self._require_stage(request, MRFStage.DRAFT, "submit")
        validate_for_submission(request)

        updated = await self._advance(
            request, MRFStage.PENDING_EXECUTIVE_REVIEW, actor, "submit"
        )
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.MRF_SUBMITTED, self._payload(updated)),),
        )

    async def executive_decision(
        self,
        mrf_id: str,
        approve: bool,
        comment: Optional[str],
        actor: Actor,
    ) -> TransitionResult:
        require_role(actor, EXECUTIVE_REVIEWERS, "review material requests as executive")
        request = await self.get(mrf_id)
        self._require_stage(
            request, MRFStage.PENDING_EXECUTIVE_REVIEW, "record an executive decision"
        )
        decision = self._decision(actor, approve, comment)

        if not approve:
            reason = require_reason(comment)
            updated = await self._advance(
                request,
                MRFStage.REJECTED_BY_EXECUTIVE,
                actor,
                "executive_reject",
                rejection_reason=reason,
                executive_decision=decision,
            )
            logger.warning("Material request %s rejected by executive: %s", mrf_id, reason)
            return TransitionResult(
                record=updated,
                events=(
                    self._event(
                        EventType.MRF_REJECTED_BY_EXECUTIVE, self._payload(updated)
                    ),
                ),
            )

        if request.estimated_cost > self._threshold:
            target, event_type = (
                MRFStage.PENDING_CHAIRMAN_REVIEW,
                EventType.MRF_SENT_TO_CHAIRMAN,
            )
        else:
            target, event_type = (
                MRFStage.APPROVED_FOR_PO,
                EventType.MRF_APPROVED_BY_EXECUTIVE,
            )

        updated = await self._advance(
            request, target, actor, "executive_approve", executive_decision=decision
        )
        return TransitionResult(
            record=updated,
            events=(self._event(event_type, self._payload(updated)),),
        )

    async def chairman_decision(
        self,
        mrf_id: str,
        approve: bool,
        comment: Optional[str],
        actor: Actor,
    ) -> TransitionResult:
        require_role(actor, CHAIRMAN_REVIEWERS, "review material requests as chairman")
        request = await self.get(mrf_id)
        self._require_stage(
            request, MRFStage.PENDING_CHAIRMAN_REVIEW, "record a chairman decision"
        )
        decision = self._decision(actor, approve, comment)

        if approve:
            updated = await self._advance(
                request,
                MRFStage.APPROVED_FOR_PO,
                actor,
                "chairman_approve",
                chairman_decision=decision,
            )
            event_type = EventType.MRF_APPROVED_BY_CHAIRMAN
        else:
            reason = require_reason(comment)
            updated = await self._advance(
                request,
                MRFStage.REJECTED_BY_CHAIRMAN,
                actor,
                "chairman_reject",
                rejection_reason=reason,
                chairman_decision=decision,
            )
            logger.warning("Material request %s rejected by chairman: %s", mrf_id, reason)
            event_type = EventType.MRF_REJECTED_BY_CHAIRMAN

        return TransitionResult(
            record=updated,
            events=(self._event(event_type, self._payload(updated)),),
        )

    async def supply_chain_reject(
        self, mrf_id: str, reason: Optional[str], actor: Actor
    ) -> TransitionResult:
        """Withdraw a request at signature time instead of sending the PO back."""
        require_role(actor, SUPPLY_CHAIN_SIGNERS, "reject material requests at signature")
        request = await self.get(mrf_id)
        self._require_stage(
            request, MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE, "reject at signature"
        )
        updated = await self._advance(
            request,
            MRFStage.REJECTED_BY_SUPPLY_CHAIN,
            actor,
            "supply_chain_reject",
            commit=False,
            rejection_reason=require_reason(reason),
        )
        await self._withdraw_order(request, actor, updated.rejection_reason)
        await self._repository.commit()
        logger.warning(
            "Material request %s rejected by supply chain: %s",
            mrf_id,
            updated.rejection_reason,
        )
        return TransitionResult(
            record=updated,
            events=(
                self._event(
                    EventType.MRF_REJECTED_BY_SUPPLY_CHAIN, self._payload(updated)
                ),
            ),
        )

    async def resubmit(
        self,
        mrf_id: str,
        updated_fields: Mapping[str, Any],
        actor: Actor,
    ) -> TransitionResult:
        request = await self.get(mrf_id)
        self._require_owner(request, actor)
        if not request.stage.is_rejected:
            raise InvalidStageTransition(
                f"Material request {mrf_id} is {request.stage.value}; "
                "only rejected requests can be resubmitted"
            )

        changes = self._field_changes(updated_fields)
        candidate = replace(request, **changes)
        validate_for_submission(candidate)

        updated = await self._advance(
            candidate,
            MRFStage.PENDING_EXECUTIVE_REVIEW,
            actor,
            "resubmit",
            expected_stage=request.stage,
            commit=False,
            rejection_reason=None,
            executive_decision=None,
            chairman_decision=None,
            po_id=None,
            po_number=None,
        )
        await self._withdraw_order(request, actor, "Material request resubmitted")
        await self._repository.commit()
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.MRF_SUBMITTED, self._payload(updated)),),
        )

    async def start_payment(self, mrf_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, PAYMENT_HANDLERS, "process payments")
        request = await self.get(mrf_id)
        self._require_stage(request, MRFStage.PENDING_FINANCE_PAYMENT, "start payment")
        updated = await self._advance(
            request, MRFStage.PAYMENT_PROCESSING, actor, "start_payment"
        )
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.PAYMENT_PROCESSING, self._payload(updated)),),
        )

    async def complete_payment(self, mrf_id: str, actor: Actor) -> TransitionResult:
        require_role(actor, PAYMENT_HANDLERS, "complete payments")
        request = await self.get(mrf_id)
        self._require_stage(request, MRFStage.PAYMENT_PROCESSING, "complete payment")
        updated = await self._advance(
            request, MRFStage.PAYMENT_COMPLETED, actor, "complete_payment"
        )
        return TransitionResult(
            record=updated,
            events=(self._event(EventType.PAYMENT_COMPLETED, self._payload(updated)),),
        )

    def _build(
        self, command: MaterialRequestInput, actor: Actor, stage: MRFStage
    ) -> MaterialRequest:
        now = self._clock()
        return MaterialRequest(
            id=self._id_generator(),
            title=(command.title or "").strip(),
            category=(command.category or "").strip(),
            description=(command.description or "").strip(),
            quantity=command.quantity or 0,
            justification=(command.justification or "").strip(),
            estimated_cost=_coerce_cost(command.estimated_cost),
            urgency=_coerce_urgency(command.urgency),
            requester_id=actor.id,
            requester_name=actor.name,
            department=actor.department,
            stage=stage,
            created_at=now,
            updated_at=now,
        )

    def _field_changes(self, updated_fields: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(updated_fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be changed on resubmission: {', '.join(sorted(unknown))}"
            )
        changes = dict(updated_fields)
        if "estimated_cost" in changes:
            changes["estimated_cost"] = _coerce_cost(changes["estimated_cost"])
        if "urgency" in changes:
            changes["urgency"] = _coerce_urgency(changes["urgency"])
        return changes

    async def _advance(
        self,
        request: MaterialRequest,
        target: MRFStage,
        actor: Actor,
        action: str,
        expected_stage: Optional[MRFStage] = None,
        commit: bool = True,
        **changes: Any,
    ) -> MaterialRequest:
        expected = expected_stage or request.stage
        updated = replace(request, stage=target, updated_at=self._clock(), **changes)
        await self._repository.write_if_stage(request.id, expected, updated)
        await self._audit(
            self._repository, actor, request.id, action,
            f"Material request {request.id}: {action.replace('_', ' ')}",
            previous=expected.value,
            current=target.value,
        )
        if commit:
            await self._repository.commit()
        return updated

    async def _withdraw_order(
        self, request: MaterialRequest, actor: Actor, reason: Optional[str]
    ) -> None:
        """Send the request's live purchase order back to Draft when the link is dropped."""
        if self._orders is None or not request.po_id:
            return
        order = await self._orders.get(request.po_id)
        if order is None or order.stage not in WITHDRAWABLE_ORDER_STAGES:
            return

        withdrawn = replace(
            order, stage=POStage.DRAFT, rejection_reason=reason, updated_at=self._clock()
        )
        await self._orders.write_if_stage(order.id, order.stage, withdrawn)
        await self._audit(
            self._orders, actor, order.id, "withdraw",
            f"Purchase order {order.po_number} withdrawn with material request {request.id}",
            previous=order.stage.value,
            current=POStage.DRAFT.value,
            entity_type="purchase_order",
        )

    def _decision(self, actor: Actor, approve: bool, comment: Optional[str]) -> Decision:
        return Decision(
            actor_id=actor.id,
            actor_name=actor.name,
            approved=approve,
            decided_at=self._clock(),
            comment=comment,
        )

    @staticmethod
    def _require_stage(request: MaterialRequest, stage: MRFStage, action: str) -> None:
        if request.stage != stage:
            raise InvalidStageTransition(
                f"Cannot {action}: material request {request.id} is "
                f"{request.stage.value}, expected {stage.value}"
            )

    @staticmethod
    def _require_owner(request: MaterialRequest, actor: Actor) -> None:
        if actor.id != request.requester_id and actor.role != Role.ADMIN:
            raise Unauthorized("Only the requester can submit this material request")

    @staticmethod
    def _payload(request: MaterialRequest) -> Dict[str, Any]:
        return {
            "mrf_id": request.id,
            "mrf_title": request.title,
            "amount": request.estimated_cost,
            "reason": request.rejection_reason,
            "requester_id": request.requester_id,
            "requester_name": request.requester_name,
            "department": request.department,
            "po_number": request.po_number,
            "stage": request.stage.value,
        }
