from datetime import date
from decimal import Decimal

from app.procurement.domain.models import ItemCondition, Urgency
from app.procurement.presentation.schemas import (
    GoodsReceivedBody,
    MaterialRequestBody,
    PurchaseOrderBody,
    ResubmitBody,
)


def test_material_request_accepts_camel_case():
    body = MaterialRequestBody.model_validate(
        {
            "title": "Generator",
            "category": "Equipment",
            "description": "Standby unit",
            "quantity": 1,
            "justification": "Backup power",
            "estimatedCost": "1500000",
            "urgency": "High",
        }
    )

    command = body.to_input()

    assert command.estimated_cost == Decimal("1500000")
    assert command.urgency == Urgency.HIGH


def test_snake_case_is_accepted_too():
    body = MaterialRequestBody.model_validate({"title": "Generator", "estimated_cost": 10})

    assert body.to_input().estimated_cost == Decimal("10")
    assert body.to_input().urgency == Urgency.MEDIUM


def test_resubmit_only_carries_fields_sent():
    body = ResubmitBody.model_validate({"estimatedCost": "900000"})

    assert body.changed_fields() == {"estimated_cost": Decimal("900000")}


def test_purchase_order_body():
    body = PurchaseOrderBody.model_validate(
        {
            "mrfId": "MRF-1",
            "vendorIds": ["vendor-1"],
            "deliveryDate": "2026-02-01",
            "paymentTerms": "30 days",
            "documentRef": "uploads/po.pdf",
            "poId": "PO-1",
        }
    )

    command = body.to_input()

    assert command.mrf_id == "MRF-1"
    assert command.vendor_ids == ("vendor-1",)
    assert command.delivery_date == date(2026, 2, 1)
    assert command.po_id == "PO-1"
    assert command.amount is None


def test_goods_received_body():
    body = GoodsReceivedBody.model_validate(
        {
            "poNumber": "PO-2026-0001",
            "vendorId": "vendor-1",
            "vendorName": "Dangote Supplies",
            "items": [
                {
                    "name": "Cement",
                    "quantityOrdered": 100,
                    "quantityReceived": 98,
                    "unitPrice": "5000",
                    "condition": "Partial",
                }
            ],
            "invoiceRef": "INV-1",
        }
    )

    command = body.to_command()

    assert command.po_number == "PO-2026-0001"
    assert command.items[0].quantity_received == 98
    assert command.items[0].unit_price == Decimal("5000")
    assert command.items[0].condition == ItemCondition.PARTIAL
    assert command.warehouse_location is None
