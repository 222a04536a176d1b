"""
Procurement Routes - material requests, purchase orders and goods receipts
Every committed transition is fanned out to the notification feed.
"""
from datetime import datetime
from typing import Iterable
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.procurement.application.grn_workflow import GoodsReceivedWorkflow
from app.procurement.application.mrf_workflow import MaterialRequestWorkflow
from app.procurement.application.po_workflow import PurchaseOrderWorkflow
from app.procurement.domain.errors import DomainError
from app.procurement.domain.events import DomainEvent
from app.procurement.domain.models import Actor
from app.procurement.infrastructure.sqlalchemy_repository import (
    SqlAlchemyGoodsReceivedRepository,
    SqlAlchemyMaterialRequestRepository,
    SqlAlchemyPurchaseOrderRepository,
)
from app.procurement.presentation.response_mapper import (
    goods_received_to_response,
    material_request_to_response,
    purchase_order_to_response,
)
from app.procurement.presentation.schemas import (
    DecisionBody,
    GoodsReceivedBody,
    MaterialRequestBody,
    PurchaseOrderBody,
    ReasonBody,
    ResubmitBody,
)
from app.settings import procurement_settings
from database import get_postgres_session
from routes.auth import get_current_actor
from routes.errors import to_http_exception
from routes.notification_routes import build_dispatcher

# Create router
procurement_router = APIRouter(prefix="/api", tags=["Procurement Workflow"])


# ==================== HELPER FUNCTIONS ====================

def new_id() -> str:
    return str(uuid.uuid4())


def mrf_workflow(session: AsyncSession) -> MaterialRequestWorkflow:
    return MaterialRequestWorkflow(
        repository=SqlAlchemyMaterialRequestRepository(session),
        id_generator=new_id,
        clock=datetime.utcnow,
        high_value_threshold=procurement_settings.high_value_threshold,
        orders=SqlAlchemyPurchaseOrderRepository(session),
    )


def po_workflow(session: AsyncSession) -> PurchaseOrderWorkflow:
    return PurchaseOrderWorkflow(
        orders=SqlAlchemyPurchaseOrderRepository(session),
        requests=SqlAlchemyMaterialRequestRepository(session),
        id_generator=new_id,
        clock=datetime.utcnow,
    )


def grn_workflow(session: AsyncSession) -> GoodsReceivedWorkflow:
    return GoodsReceivedWorkflow(
        repository=SqlAlchemyGoodsReceivedRepository(session),
        id_generator=new_id,
        clock=datetime.utcnow,
    )


async def publish(session: AsyncSession, events: Iterable[DomainEvent]) -> None:
    # The transition is already committed; dispatch failures are logged only.
    await build_dispatcher(session).dispatch_all(events)


# ==================== MATERIAL REQUEST ROUTES ====================

@procurement_router.post("/mrfs/drafts")
async def save_mrf_draft(
    data: MaterialRequestBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Save a material request without submitting it"""
    try:
        request = await mrf_workflow(session).save_draft(data.to_input(), current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    return material_request_to_response(request)


@procurement_router.post("/mrfs")
async def submit_mrf(
    data: MaterialRequestBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Create a material request and send it for executive review"""
    try:
        result = await mrf_workflow(session).submit(data.to_input(), current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.get("/mrfs/{mrf_id}")
async def get_mrf(
    mrf_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        request = await mrf_workflow(session).get(mrf_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return material_request_to_response(request)


@procurement_router.post("/mrfs/{mrf_id}/submit")
async def submit_mrf_draft(
    mrf_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).submit_draft(mrf_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/executive-decision")
async def executive_decision(
    mrf_id: str,
    data: DecisionBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).executive_decision(
            mrf_id, data.approve, data.comment, current_user
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/chairman-decision")
async def chairman_decision(
    mrf_id: str,
    data: DecisionBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).chairman_decision(
            mrf_id, data.approve, data.comment, current_user
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/supply-chain-reject")
async def supply_chain_reject_mrf(
    mrf_id: str,
    data: ReasonBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).supply_chain_reject(
            mrf_id, data.reason, current_user
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/resubmit")
async def resubmit_mrf(
    mrf_id: str,
    data: ResubmitBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).resubmit(
            mrf_id, data.changed_fields(), current_user
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/payment/start")
async def start_mrf_payment(
    mrf_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).start_payment(mrf_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


@procurement_router.post("/mrfs/{mrf_id}/payment/complete")
async def complete_mrf_payment(
    mrf_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await mrf_workflow(session).complete_payment(mrf_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return material_request_to_response(result.record)


# ==================== PURCHASE ORDER ROUTES ====================

@procurement_router.post("/pos/drafts")
async def save_po_draft(
    data: PurchaseOrderBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        order = await po_workflow(session).save_draft(data.to_input(), current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    return purchase_order_to_response(order)


@procurement_router.post("/pos")
async def generate_po(
    data: PurchaseOrderBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    """Issue a purchase order to vendors, or re-issue a returned draft (poId set)"""
    try:
        result = await po_workflow(session).generate_po(data.to_input(), current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return purchase_order_to_response(result.record)


@procurement_router.get("/pos/{po_id}")
async def get_po(
    po_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        order = await po_workflow(session).get(po_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return purchase_order_to_response(order)


@procurement_router.post("/pos/{po_id}/forward")
async def forward_po_to_supply_chain(
    po_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await po_workflow(session).forward_to_supply_chain(po_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return purchase_order_to_response(result.record)


@procurement_router.post("/pos/{po_id}/supply-chain-decision")
async def supply_chain_decision(
    po_id: str,
    data: DecisionBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await po_workflow(session).supply_chain_decision(
            po_id, data.approve, data.comment, current_user
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return purchase_order_to_response(result.record)


# ==================== GOODS RECEIVED ROUTES ====================

@procurement_router.post("/grns")
async def create_grn(
    data: GoodsReceivedBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).create_grn(data.to_command(), current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)


@procurement_router.get("/grns/{grn_id}")
async def get_grn(
    grn_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        grn = await grn_workflow(session).get(grn_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return goods_received_to_response(grn)


@procurement_router.post("/grns/{grn_id}/inspect")
async def inspect_grn(
    grn_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).inspect(grn_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)


@procurement_router.post("/grns/{grn_id}/forward")
async def forward_grn_to_finance(
    grn_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).forward_to_finance(grn_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)


@procurement_router.post("/grns/{grn_id}/payment/process")
async def process_grn_payment(
    grn_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).process_payment(grn_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)


@procurement_router.post("/grns/{grn_id}/payment/complete")
async def complete_grn_payment(
    grn_id: str,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).complete_payment(grn_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)


@procurement_router.post("/grns/{grn_id}/reject")
async def reject_grn(
    grn_id: str,
    data: ReasonBody,
    current_user: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_postgres_session)
):
    try:
        result = await grn_workflow(session).reject(grn_id, data.reason, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    await publish(session, result.events)
    return goods_received_to_response(result.record)
