from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from fakes import (
    FIXED_NOW,
    FakeMaterialRequestRepository,
    FakePurchaseOrderRepository,
    SequentialIds,
    clock,
    make_actor,
    run,
)

from app.procurement.application.mrf_workflow import MaterialRequestWorkflow
from app.procurement.application.po_workflow import (
    PurchaseOrderInput,
    PurchaseOrderWorkflow,
)
from app.procurement.domain.errors import (
    InvalidStageTransition,
    Unauthorized,
    ValidationError,
)
from app.procurement.domain.events import EventType
from app.procurement.domain.models import (
    MaterialRequest,
    MRFStage,
    POStage,
    Role,
)


PROCUREMENT = make_actor(Role.PROCUREMENT)
SUPPLY_CHAIN = make_actor(Role.SUPPLY_CHAIN_DIRECTOR, name="Kemi Bello")
EMPLOYEE = make_actor(Role.EMPLOYEE)
EXECUTIVE = make_actor(Role.EXECUTIVE)


def build_workflow(stage=MRFStage.APPROVED_FOR_PO, clock=clock):
    requests = FakeMaterialRequestRepository()
    orders = FakePurchaseOrderRepository()
    requests.records["MRF-1"] = MaterialRequest(
        id="MRF-1",
        title="Steel rebar",
        category="Materials",
        description="16mm rebar",
        quantity=40,
        justification="Slab works",
        requester_id=EMPLOYEE.id,
        requester_name=EMPLOYEE.name,
        department="Operations",
        stage=stage,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        estimated_cost=Decimal("820000"),
    )
    workflow = PurchaseOrderWorkflow(
        orders=orders,
        requests=requests,
        id_generator=SequentialIds("PO"),
        clock=clock,
    )
    return workflow, orders, requests


def po_input(**overrides):
    values = dict(
        mrf_id="MRF-1",
        vendor_ids=("vendor-1", "vendor-2"),
        amount=Decimal("800000"),
        delivery_date=date(2026, 2, 1),
        payment_terms="30 days net",
        document_ref="uploads/po-mrf-1.pdf",
    )
    values.update(overrides)
    return PurchaseOrderInput(**values)


def event_types(result):
    return [event.type for event in result.events]


def test_generate_po_sends_to_vendors_and_links_request():
    workflow, orders, requests = build_workflow()

    result = run(workflow.generate_po(po_input(), PROCUREMENT))

    order = result.record
    assert order.stage == POStage.SENT_TO_VENDORS
    assert order.po_number == "PO-2026-0001"
    assert order.vendor_ids == ("vendor-1", "vendor-2")
    assert orders.records[order.id] == order

    request = requests.records["MRF-1"]
    assert request.stage == MRFStage.PO_GENERATED
    assert request.po_id == order.id
    assert request.po_number == "PO-2026-0001"

    assert event_types(result) == [EventType.PO_GENERATED]
    assert result.events[0].payload["po_number"] == "PO-2026-0001"
    assert result.events[0].payload["mrf_id"] == "MRF-1"
    assert orders.commits == 1


def test_amount_defaults_to_estimated_cost():
    workflow, _, _ = build_workflow()

    result = run(workflow.generate_po(po_input(amount=None), PROCUREMENT))

    assert result.record.amount == Decimal("820000")


@pytest.mark.parametrize(
    "overrides",
    [
        {"vendor_ids": ()},
        {"vendor_ids": ("  ",)},
        {"delivery_date": None},
        {"payment_terms": ""},
        {"document_ref": None},
    ],
)
def test_generate_po_requires_complete_order(overrides):
    workflow, orders, requests = build_workflow()

    with pytest.raises(ValidationError):
        run(workflow.generate_po(po_input(**overrides), PROCUREMENT))

    assert orders.records == {}
    assert requests.records["MRF-1"].stage == MRFStage.APPROVED_FOR_PO


def test_generate_po_requires_approved_request():
    workflow, orders, _ = build_workflow(stage=MRFStage.PENDING_EXECUTIVE_REVIEW)

    with pytest.raises(InvalidStageTransition):
        run(workflow.generate_po(po_input(), PROCUREMENT))
    assert orders.records == {}


def test_only_procurement_issues_orders():
    workflow, _, _ = build_workflow()

    with pytest.raises(Unauthorized):
        run(workflow.generate_po(po_input(), EMPLOYEE))


def test_draft_is_saved_without_event_then_issued():
    workflow, orders, requests = build_workflow()

    draft = run(
        workflow.save_draft(
            PurchaseOrderInput(mrf_id="MRF-1", vendor_ids=("vendor-1",)), PROCUREMENT
        )
    )
    assert draft.stage == POStage.DRAFT
    assert requests.records["MRF-1"].stage == MRFStage.APPROVED_FOR_PO

    result = run(workflow.generate_po(po_input(po_id=draft.id), PROCUREMENT))

    assert result.record.id == draft.id
    assert result.record.stage == POStage.SENT_TO_VENDORS
    assert list(orders.records) == [draft.id]
    assert requests.records["MRF-1"].po_id == draft.id


def test_supply_chain_approval_cascades_to_finance():
    workflow, orders, requests = build_workflow()
    po_id = run(workflow.generate_po(po_input(), PROCUREMENT)).record.id

    forwarded = run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))
    assert forwarded.record.stage == POStage.PENDING_SUPPLY_CHAIN_SIGNATURE
    assert event_types(forwarded) == [EventType.PO_SENT_TO_SUPPLY_CHAIN]
    assert requests.records["MRF-1"].stage == MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE

    signed = run(workflow.supply_chain_decision(po_id, True, None, SUPPLY_CHAIN))

    assert event_types(signed) == [EventType.PO_SIGNED, EventType.PO_SENT_TO_FINANCE]
    assert signed.record.stage == POStage.SENT_TO_FINANCE
    assert orders.records[po_id].signed_by == "Kemi Bello"
    assert requests.records["MRF-1"].stage == MRFStage.PENDING_FINANCE_PAYMENT


def test_supply_chain_rejection_returns_order_to_draft_only():
    workflow, orders, requests = build_workflow()
    po_id = run(workflow.generate_po(po_input(), PROCUREMENT)).record.id
    run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))

    with pytest.raises(ValidationError):
        run(workflow.supply_chain_decision(po_id, False, None, SUPPLY_CHAIN))

    rejected = run(workflow.supply_chain_decision(po_id, False, "Wrong vendor", SUPPLY_CHAIN))

    assert rejected.record.stage == POStage.DRAFT
    assert rejected.record.rejection_reason == "Wrong vendor"
    assert event_types(rejected) == [EventType.PO_REJECTED_BY_SUPPLY_CHAIN]
    assert requests.records["MRF-1"].stage == MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE


def test_rejected_order_can_be_reissued_and_signed():
    workflow, orders, requests = build_workflow()
    po_id = run(workflow.generate_po(po_input(), PROCUREMENT)).record.id
    run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))
    run(workflow.supply_chain_decision(po_id, False, "Wrong vendor", SUPPLY_CHAIN))

    reissued = run(
        workflow.generate_po(po_input(po_id=po_id, vendor_ids=("vendor-3",)), PROCUREMENT)
    )
    assert reissued.record.stage == POStage.SENT_TO_VENDORS
    assert reissued.record.rejection_reason is None
    assert reissued.record.po_number == "PO-2026-0001"

    run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))
    signed = run(workflow.supply_chain_decision(po_id, True, None, SUPPLY_CHAIN))

    assert signed.record.stage == POStage.SENT_TO_FINANCE
    assert requests.records["MRF-1"].stage == MRFStage.PENDING_FINANCE_PAYMENT
    assert len(orders.records) == 1


def test_signing_is_restricted_and_stage_checked():
    workflow, _, _ = build_workflow()
    po_id = run(workflow.generate_po(po_input(), PROCUREMENT)).record.id

    with pytest.raises(InvalidStageTransition):
        run(workflow.supply_chain_decision(po_id, True, None, SUPPLY_CHAIN))

    run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))
    with pytest.raises(Unauthorized):
        run(workflow.supply_chain_decision(po_id, True, None, PROCUREMENT))
    with pytest.raises(InvalidStageTransition):
        run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))


def request_workflow(orders, requests):
    return MaterialRequestWorkflow(
        repository=requests,
        id_generator=SequentialIds("EVT"),
        clock=clock,
        orders=orders,
    )


def issue_and_forward(workflow):
    po_id = run(workflow.generate_po(po_input(), PROCUREMENT)).record.id
    run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))
    return po_id


def test_withdrawn_request_sends_its_order_back_to_draft():
    workflow, orders, requests = build_workflow()
    requests_flow = request_workflow(orders, requests)
    po_id = issue_and_forward(workflow)

    run(requests_flow.supply_chain_reject("MRF-1", "Budget frozen", SUPPLY_CHAIN))

    order = orders.records[po_id]
    assert order.stage == POStage.DRAFT
    assert order.rejection_reason == "Budget frozen"
    [entry] = [e for e in orders.audit_entries if e.action == "withdraw"]
    assert entry.entity_type == "purchase_order"
    with pytest.raises(InvalidStageTransition):
        run(workflow.supply_chain_decision(po_id, True, None, SUPPLY_CHAIN))


def test_abandoned_order_cannot_advance_the_reapproved_request():
    workflow, orders, requests = build_workflow()
    requests_flow = request_workflow(orders, requests)
    old_po = issue_and_forward(workflow)

    run(requests_flow.supply_chain_reject("MRF-1", "Budget frozen", SUPPLY_CHAIN))
    run(requests_flow.resubmit("MRF-1", {}, EMPLOYEE))
    run(requests_flow.executive_decision("MRF-1", True, None, EXECUTIVE))
    new_po = issue_and_forward(workflow)

    with pytest.raises(InvalidStageTransition):
        run(workflow.supply_chain_decision(old_po, True, None, SUPPLY_CHAIN))
    with pytest.raises(InvalidStageTransition):
        run(workflow.generate_po(po_input(po_id=old_po), PROCUREMENT))

    request = requests.records["MRF-1"]
    assert request.stage == MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE
    assert request.po_id == new_po
    assert orders.records[old_po].stage == POStage.DRAFT

    run(workflow.supply_chain_decision(new_po, True, None, SUPPLY_CHAIN))
    assert requests.records["MRF-1"].stage == MRFStage.PENDING_FINANCE_PAYMENT


def test_only_the_linked_order_can_be_forwarded_or_signed():
    workflow, orders, requests = build_workflow()
    po_id = issue_and_forward(workflow)
    requests.records["MRF-1"] = replace(requests.records["MRF-1"], po_id="PO-other")

    with pytest.raises(InvalidStageTransition):
        run(workflow.supply_chain_decision(po_id, True, None, SUPPLY_CHAIN))
    assert orders.records[po_id].stage == POStage.PENDING_SUPPLY_CHAIN_SIGNATURE

    orders.records[po_id] = replace(orders.records[po_id], stage=POStage.SENT_TO_VENDORS)
    with pytest.raises(InvalidStageTransition):
        run(workflow.forward_to_supply_chain(po_id, PROCUREMENT))


def test_rejected_order_cannot_be_reissued_once_request_is_withdrawn():
    workflow, orders, requests = build_workflow()
    requests_flow = request_workflow(orders, requests)
    po_id = issue_and_forward(workflow)
    run(workflow.supply_chain_decision(po_id, False, "Wrong vendor", SUPPLY_CHAIN))
    run(requests_flow.supply_chain_reject("MRF-1", "Scope cancelled", SUPPLY_CHAIN))

    with pytest.raises(InvalidStageTransition):
        run(workflow.generate_po(po_input(po_id=po_id), PROCUREMENT))

    assert orders.records[po_id].stage == POStage.DRAFT
    assert requests.records["MRF-1"].stage == MRFStage.REJECTED_BY_SUPPLY_CHAIN


def test_amount_with_more_than_two_decimals_is_refused():
    workflow, orders, _ = build_workflow()

    with pytest.raises(ValidationError):
        run(workflow.generate_po(po_input(amount=Decimal("800000.125")), PROCUREMENT))
    assert orders.records == {}


def test_po_numbers_restart_each_year():
    now = {"value": datetime(2026, 12, 31, 17, 0)}
    workflow, _, _ = build_workflow(clock=lambda: now["value"])
    draft = PurchaseOrderInput(mrf_id="MRF-1", vendor_ids=("vendor-1",))

    first = run(workflow.save_draft(draft, PROCUREMENT))
    second = run(workflow.save_draft(draft, PROCUREMENT))
    now["value"] = datetime(2027, 1, 2, 9, 0)
    third = run(workflow.save_draft(draft, PROCUREMENT))

    assert [first.po_number, second.po_number, third.po_number] == [
        "PO-2026-0001",
        "PO-2026-0002",
        "PO-2027-0001",
    ]
