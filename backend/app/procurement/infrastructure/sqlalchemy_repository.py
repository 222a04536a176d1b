from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.procurement.domain.errors import NotFound, StaleStateConflict
from app.procurement.domain.models import (
    AuditEntry,
    Decision,
    GoodsReceivedNote,
    GRNItem,
    GRNStatus,
    ItemCondition,
    MaterialRequest,
    MRFStage,
    PaymentStatus,
    POStage,
    PurchaseOrder,
    Urgency,
)
from database import (
    AuditLog,
    GoodsReceivedItem as GoodsReceivedItemModel,
    GoodsReceivedNote as GoodsReceivedNoteModel,
    MaterialRequest as MaterialRequestModel,
    PurchaseOrder as PurchaseOrderModel,
    SequenceCounter,
)


def _decision_to_json(decision: Optional[Decision]) -> Optional[Dict[str, Any]]:
    if decision is None:
        return None
    return {
        "actor_id": decision.actor_id,
        "actor_name": decision.actor_name,
        "approved": decision.approved,
        "decided_at": decision.decided_at.isoformat(),
        "comment": decision.comment,
    }


def _decision_from_json(raw: Optional[Dict[str, Any]]) -> Optional[Decision]:
    if not raw:
        return None
    return Decision(
        actor_id=raw["actor_id"],
        actor_name=raw["actor_name"],
        approved=raw["approved"],
        decided_at=datetime.fromisoformat(raw["decided_at"]),
        comment=raw.get("comment"),
    )


class _SqlAlchemyRepository:
    model: Any = None
    stage_column = "stage"
    label = "record"

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_audit_entry(self, entry: AuditEntry) -> None:
        audit_log = AuditLog(
            id=entry.id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            changes=entry.changes,
            user_id=entry.user_id,
            user_name=entry.user_name,
            user_role=entry.user_role,
            description=entry.description,
            timestamp=entry.timestamp,
        )
        self._session.add(audit_log)

    async def commit(self) -> None:
        await self._session.commit()

    async def _compare_and_set(
        self, record_id: str, expected_stage: str, values: Dict[str, Any]
    ) -> None:
        stage = getattr(self.model, self.stage_column)
        result = await self._session.execute(
            update(self.model)
            .where(self.model.id == record_id, stage == expected_stage)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        current = await self._session.execute(
            select(stage).where(self.model.id == record_id)
        )
        current_stage = current.scalar_one_or_none()
        if current_stage is None:
            raise NotFound(f"{self.label} {record_id} not found")
        raise StaleStateConflict(
            f"{self.label} {record_id} is {current_stage}, expected {expected_stage}; "
            "reload and retry"
        )

    async def next_sequence_value(self, name: str) -> int:
        counter = await self._locked_counter(name)
        if counter is None:
            # First number of the period; another request may insert the row first.
            try:
                async with self._session.begin_nested():
                    self._session.add(SequenceCounter(name=name, current_value=1))
                return 1
            except IntegrityError:
                counter = await self._locked_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        await self._session.flush()
        return counter.current_value

    async def _locked_counter(self, name: str) -> Optional[SequenceCounter]:
        result = await self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class SqlAlchemyMaterialRequestRepository(_SqlAlchemyRepository):
    model = MaterialRequestModel
    label = "Material request"

    async def get(self, mrf_id: str) -> Optional[MaterialRequest]:
        result = await self._session.execute(
            select(MaterialRequestModel).where(MaterialRequestModel.id == mrf_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return MaterialRequest(
            id=row.id,
            title=row.title,
            category=row.category,
            description=row.description,
            quantity=row.quantity,
            justification=row.justification,
            requester_id=row.requester_id,
            requester_name=row.requester_name,
            department=row.department,
            stage=MRFStage(row.stage),
            created_at=row.created_at,
            updated_at=row.updated_at,
            estimated_cost=Decimal(row.estimated_cost or 0),
            urgency=Urgency(row.urgency),
            rejection_reason=row.rejection_reason,
            executive_decision=_decision_from_json(row.executive_decision),
            chairman_decision=_decision_from_json(row.chairman_decision),
            po_id=row.po_id,
            po_number=row.po_number,
        )

    async def add(self, request: MaterialRequest) -> None:
        self._session.add(MaterialRequestModel(id=request.id, **self._values(request)))

    async def write_if_stage(
        self, mrf_id: str, expected_stage: MRFStage, request: MaterialRequest
    ) -> None:
        await self._compare_and_set(mrf_id, expected_stage.value, self._values(request))

    @staticmethod
    def _values(request: MaterialRequest) -> Dict[str, Any]:
        return {
            "title": request.title,
            "category": request.category,
            "description": request.description,
            "quantity": request.quantity,
            "justification": request.justification,
            "estimated_cost": request.estimated_cost,
            "urgency": request.urgency.value,
            "requester_id": request.requester_id,
            "requester_name": request.requester_name,
            "department": request.department,
            "stage": request.stage.value,
            "rejection_reason": request.rejection_reason,
            "executive_decision": _decision_to_json(request.executive_decision),
            "chairman_decision": _decision_to_json(request.chairman_decision),
            "po_id": request.po_id,
            "po_number": request.po_number,
            "created_at": request.created_at,
            "updated_at": request.updated_at,
        }


class SqlAlchemyPurchaseOrderRepository(_SqlAlchemyRepository):
    model = PurchaseOrderModel
    label = "Purchase order"

    async def get(self, po_id: str) -> Optional[PurchaseOrder]:
        result = await self._session.execute(
            select(PurchaseOrderModel).where(PurchaseOrderModel.id == po_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return PurchaseOrder(
            id=row.id,
            po_number=row.po_number,
            mrf_id=row.mrf_id,
            stage=POStage(row.stage),
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
            vendor_ids=tuple(row.vendor_ids or ()),
            amount=Decimal(row.amount or 0),
            delivery_date=row.delivery_date,
            payment_terms=row.payment_terms,
            document_ref=row.document_ref,
            rejection_reason=row.rejection_reason,
            signed_by=row.signed_by,
        )

    async def add(self, order: PurchaseOrder) -> None:
        self._session.add(PurchaseOrderModel(id=order.id, **self._values(order)))

    async def write_if_stage(
        self, po_id: str, expected_stage: POStage, order: PurchaseOrder
    ) -> None:
        await self._compare_and_set(po_id, expected_stage.value, self._values(order))

    @staticmethod
    def _values(order: PurchaseOrder) -> Dict[str, Any]:
        return {
            "po_number": order.po_number,
            "mrf_id": order.mrf_id,
            "stage": order.stage.value,
            "vendor_ids": list(order.vendor_ids),
            "amount": order.amount,
            "delivery_date": order.delivery_date,
            "payment_terms": order.payment_terms,
            "document_ref": order.document_ref,
            "rejection_reason": order.rejection_reason,
            "signed_by": order.signed_by,
            "created_by": order.created_by,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }


class SqlAlchemyGoodsReceivedRepository(_SqlAlchemyRepository):
    model = GoodsReceivedNoteModel
    stage_column = "status"
    label = "Goods received note"

    async def get(self, grn_id: str) -> Optional[GoodsReceivedNote]:
        result = await self._session.execute(
            select(GoodsReceivedNoteModel).where(GoodsReceivedNoteModel.id == grn_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        items_result = await self._session.execute(
            select(GoodsReceivedItemModel)
            .where(GoodsReceivedItemModel.grn_id == grn_id)
            .order_by(GoodsReceivedItemModel.item_index)
        )
        items = tuple(
            GRNItem(
                name=item.name,
                quantity_ordered=item.quantity_ordered,
                quantity_received=item.quantity_received,
                unit_price=Decimal(item.unit_price),
                condition=ItemCondition(item.condition),
                remarks=item.remarks,
            )
            for item in items_result.scalars().all()
        )
        return GoodsReceivedNote(
            id=row.id,
            grn_number=row.grn_number,
            po_number=row.po_number,
            vendor_id=row.vendor_id,
            vendor_name=row.vendor_name,
            status=GRNStatus(row.status),
            received_by=row.received_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
            items=items,
            total_amount=Decimal(row.total_amount or 0),
            payment_status=PaymentStatus(row.payment_status),
            warehouse_location=row.warehouse_location,
            invoice_ref=row.invoice_ref,
            inspected_by=row.inspected_by,
            inspection_date=row.inspection_date,
            finance_received_date=row.finance_received_date,
            finance_processed_by=row.finance_processed_by,
            rejection_reason=row.rejection_reason,
        )

    async def add(self, grn: GoodsReceivedNote) -> None:
        self._session.add(GoodsReceivedNoteModel(id=grn.id, **self._values(grn)))
        for index, item in enumerate(grn.items):
            self._session.add(
                GoodsReceivedItemModel(
                    grn_id=grn.id,
                    name=item.name,
                    quantity_ordered=item.quantity_ordered,
                    quantity_received=item.quantity_received,
                    unit_price=item.unit_price,
                    condition=item.condition.value,
                    remarks=item.remarks,
                    item_index=index,
                )
            )

    async def write_if_stage(
        self, grn_id: str, expected_stage: GRNStatus, grn: GoodsReceivedNote
    ) -> None:
        # Line items are fixed at receipt; only the header moves.
        await self._compare_and_set(grn_id, expected_stage.value, self._values(grn))

    @staticmethod
    def _values(grn: GoodsReceivedNote) -> Dict[str, Any]:
        return {
            "grn_number": grn.grn_number,
            "po_number": grn.po_number,
            "vendor_id": grn.vendor_id,
            "vendor_name": grn.vendor_name,
            "status": grn.status.value,
            "payment_status": grn.payment_status.value,
            "total_amount": grn.total_amount,
            "warehouse_location": grn.warehouse_location,
            "invoice_ref": grn.invoice_ref,
            "received_by": grn.received_by,
            "inspected_by": grn.inspected_by,
            "inspection_date": grn.inspection_date,
            "finance_received_date": grn.finance_received_date,
            "finance_processed_by": grn.finance_processed_by,
            "rejection_reason": grn.rejection_reason,
            "created_at": grn.created_at,
            "updated_at": grn.updated_at,
        }
