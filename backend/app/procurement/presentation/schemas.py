"""Request bodies accepted by the procurement API.

Clients send camelCase (``estimatedCost``); snake_case is accepted too.
Everything past this module sees snake_case only.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.procurement.application.grn_workflow import CreateGRNCommand, GRNItemInput
from app.procurement.application.mrf_workflow import MaterialRequestInput
from app.procurement.application.po_workflow import PurchaseOrderInput
from app.procurement.domain.models import ItemCondition, Urgency


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MaterialRequestBody(CamelModel):
    title: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    justification: Optional[str] = None
    estimated_cost: Optional[Decimal] = None
    urgency: Urgency = Urgency.MEDIUM

    def to_input(self) -> MaterialRequestInput:
        return MaterialRequestInput(
            title=self.title,
            category=self.category,
            description=self.description,
            quantity=self.quantity,
            justification=self.justification,
            estimated_cost=self.estimated_cost,
            urgency=self.urgency,
        )


class ResubmitBody(CamelModel):
    title: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    justification: Optional[str] = None
    estimated_cost: Optional[Decimal] = None
    urgency: Optional[Urgency] = None

    def changed_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class DecisionBody(CamelModel):
    approve: bool
    comment: Optional[str] = None


class ReasonBody(CamelModel):
    reason: Optional[str] = None


class PurchaseOrderBody(CamelModel):
    mrf_id: str
    vendor_ids: List[str] = Field(default_factory=list)
    amount: Optional[Decimal] = None
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    document_ref: Optional[str] = None
    po_id: Optional[str] = None

    def to_input(self) -> PurchaseOrderInput:
        return PurchaseOrderInput(
            mrf_id=self.mrf_id,
            vendor_ids=tuple(self.vendor_ids),
            amount=self.amount,
            delivery_date=self.delivery_date,
            payment_terms=self.payment_terms,
            document_ref=self.document_ref,
            po_id=self.po_id,
        )


class GRNItemBody(CamelModel):
    name: str
    quantity_ordered: int
    quantity_received: int
    unit_price: Decimal
    condition: ItemCondition = ItemCondition.GOOD
    remarks: Optional[str] = None


class GoodsReceivedBody(CamelModel):
    po_number: str
    vendor_id: str
    vendor_name: str
    items: List[GRNItemBody]
    warehouse_location: Optional[str] = None
    invoice_ref: Optional[str] = None

    def to_command(self) -> CreateGRNCommand:
        return CreateGRNCommand(
            po_number=self.po_number,
            vendor_id=self.vendor_id,
            vendor_name=self.vendor_name,
            items=[
                GRNItemInput(
                    name=item.name,
                    quantity_ordered=item.quantity_ordered,
                    quantity_received=item.quantity_received,
                    unit_price=item.unit_price,
                    condition=item.condition,
                    remarks=item.remarks,
                )
                for item in self.items
            ],
            warehouse_location=self.warehouse_location,
            invoice_ref=self.invoice_ref,
        )

