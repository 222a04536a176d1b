from datetime import date, datetime
from typing import Any, Dict, Optional

from app.procurement.domain.models import (
    Decision,
    GoodsReceivedNote,
    MaterialRequest,
    PurchaseOrder,
)


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def _decision_to_response(decision: Optional[Decision]) -> Optional[Dict[str, Any]]:
    if decision is None:
        return None
    return {
        "actor_id": decision.actor_id,
        "actor_name": decision.actor_name,
        "approved": decision.approved,
        "decided_at": _iso(decision.decided_at),
        "comment": decision.comment,
    }


def material_request_to_response(request: MaterialRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "title": request.title,
        "category": request.category,
        "description": request.description,
        "quantity": request.quantity,
        "justification": request.justification,
        "estimated_cost": str(request.estimated_cost),
        "urgency": request.urgency.value,
        "requester_id": request.requester_id,
        "requester_name": request.requester_name,
        "department": request.department,
        "stage": request.stage.value,
        "rejection_reason": request.rejection_reason,
        "executive_decision": _decision_to_response(request.executive_decision),
        "chairman_decision": _decision_to_response(request.chairman_decision),
        "po_id": request.po_id,
        "po_number": request.po_number,
        "created_at": _iso(request.created_at),
        "updated_at": _iso(request.updated_at),
    }


def purchase_order_to_response(order: PurchaseOrder) -> Dict[str, Any]:
    return {
        "id": order.id,
        "po_number": order.po_number,
        "mrf_id": order.mrf_id,
        "stage": order.stage.value,
        "vendor_ids": list(order.vendor_ids),
        "amount": str(order.amount),
        "delivery_date": _iso(order.delivery_date),
        "payment_terms": order.payment_terms,
        "document_ref": order.document_ref,
        "rejection_reason": order.rejection_reason,
        "signed_by": order.signed_by,
        "created_by": order.created_by,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def goods_received_to_response(grn: GoodsReceivedNote) -> Dict[str, Any]:
    return {
        "id": grn.id,
        "grn_number": grn.grn_number,
        "po_number": grn.po_number,
        "vendor_id": grn.vendor_id,
        "vendor_name": grn.vendor_name,
        "status": grn.status.value,
        "payment_status": grn.payment_status.value,
        "items": [
            {
                "name": item.name,
                "quantity_ordered": item.quantity_ordered,
                "quantity_received": item.quantity_received,
                "unit_price": str(item.unit_price),
                "condition": item.condition.value,
                "remarks": item.remarks,
                "total_amount": str(item.total_amount),
            }
            for item in grn.items
        ],
        "total_amount": str(grn.total_amount),
        "warehouse_location": grn.warehouse_location,
        "invoice_ref": grn.invoice_ref,
        "received_by": grn.received_by,
        "inspected_by": grn.inspected_by,
        "inspection_date": _iso(grn.inspection_date),
        "finance_received_date": _iso(grn.finance_received_date),
        "finance_processed_by": grn.finance_processed_by,
        "rejection_reason": grn.rejection_reason,
        "created_at": _iso(grn.created_at),
        "updated_at": _iso(grn.updated_at),
    }

