import json
from decimal import Decimal

import pytest

from fakes import (
    FIXED_NOW,
    FakeMaterialRequestRepository,
    SequentialIds,
    clock,
    make_actor,
    run,
)

from app.procurement.application.mrf_workflow import (
    MaterialRequestInput,
    MaterialRequestWorkflow,
)
from app.procurement.domain.errors import (
    InvalidStageTransition,
    NotFound,
    StaleStateConflict,
    Unauthorized,
    ValidationError,
)
from app.procurement.domain.events import EventType
from app.procurement.domain.models import MaterialRequest, MRFStage, Role, Urgency


EMPLOYEE = make_actor(Role.EMPLOYEE, "emp-1", "Ada Obi")
EXECUTIVE = make_actor(Role.EXECUTIVE)
CHAIRMAN = make_actor(Role.CHAIRMAN)
FINANCE = make_actor(Role.FINANCE)
SUPPLY_CHAIN = make_actor(Role.SUPPLY_CHAIN_DIRECTOR)


def build_workflow(**kwargs):
    repo = FakeMaterialRequestRepository()
    workflow = MaterialRequestWorkflow(
        repository=repo,
        id_generator=SequentialIds("MRF"),
        clock=clock,
        **kwargs,
    )
    return workflow, repo


def request_input(cost="500000", **overrides):
    values = dict(
        title="Diesel generator",
        category="Equipment",
        description="500kVA standby generator",
        quantity=1,
        justification="Site power backup",
        estimated_cost=Decimal(cost),
        urgency=Urgency.HIGH,
    )
    values.update(overrides)
    return MaterialRequestInput(**values)


def seed(repo, stage, mrf_id="MRF-seed", **overrides):
    values = dict(
        id=mrf_id,
        title="Cement",
        category="Materials",
        description="Portland cement",
        quantity=200,
        justification="Foundation works",
        requester_id=EMPLOYEE.id,
        requester_name=EMPLOYEE.name,
        department="Operations",
        stage=stage,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        estimated_cost=Decimal("750000"),
        po_number="PO-2026-0001",
    )
    values.update(overrides)
    request = MaterialRequest(**values)
    repo.records[request.id] = request
    return request


def event_types(result):
    return [event.type for event in result.events]


def test_low_value_request_is_approved_for_po_by_executive():
    workflow, repo = build_workflow()

    submitted = run(workflow.submit(request_input("500000"), EMPLOYEE))
    assert submitted.record.stage == MRFStage.PENDING_EXECUTIVE_REVIEW
    assert event_types(submitted) == [EventType.MRF_SUBMITTED]

    result = run(workflow.executive_decision(submitted.record.id, True, None, EXECUTIVE))

    assert result.record.stage == MRFStage.APPROVED_FOR_PO
    assert event_types(result) == [EventType.MRF_APPROVED_BY_EXECUTIVE]
    assert repo.records[submitted.record.id].stage == MRFStage.APPROVED_FOR_PO
    assert result.record.executive_decision.approved is True
    assert result.record.executive_decision.actor_id == EXECUTIVE.id


def test_high_value_request_goes_through_chairman():
    workflow, repo = build_workflow()
    mrf_id = run(workflow.submit(request_input("2000000"), EMPLOYEE)).record.id

    executive = run(workflow.executive_decision(mrf_id, True, "Looks fine", EXECUTIVE))
    assert executive.record.stage == MRFStage.PENDING_CHAIRMAN_REVIEW
    assert event_types(executive) == [EventType.MRF_SENT_TO_CHAIRMAN]

    chairman = run(workflow.chairman_decision(mrf_id, True, None, CHAIRMAN))
    assert chairman.record.stage == MRFStage.APPROVED_FOR_PO
    assert event_types(chairman) == [EventType.MRF_APPROVED_BY_CHAIRMAN]
    assert repo.records[mrf_id].chairman_decision.actor_id == CHAIRMAN.id


@pytest.mark.parametrize(
    "cost, expected_stage",
    [
        ("1000000", MRFStage.APPROVED_FOR_PO),
        ("1000000.01", MRFStage.PENDING_CHAIRMAN_REVIEW),
        ("999999.99", MRFStage.APPROVED_FOR_PO),
    ],
)
def test_chairman_threshold_is_strictly_greater_than_one_million(cost, expected_stage):
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input(cost), EMPLOYEE)).record.id

    result = run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))

    assert result.record.stage == expected_stage


@pytest.mark.parametrize("cost", ["1000000.004", "999999.999", "0.001"])
def test_costs_finer_than_a_kobo_are_refused(cost):
    workflow, repo = build_workflow()

    with pytest.raises(ValidationError):
        run(workflow.submit(request_input(cost), EMPLOYEE))
    assert repo.records == {}


def test_threshold_can_be_configured():
    workflow, _ = build_workflow(high_value_threshold=Decimal("100000"))
    mrf_id = run(workflow.submit(request_input("500000"), EMPLOYEE)).record.id

    result = run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))

    assert result.record.stage == MRFStage.PENDING_CHAIRMAN_REVIEW


def test_executive_rejection_requires_reason():
    workflow, repo = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id

    with pytest.raises(ValidationError):
        run(workflow.executive_decision(mrf_id, False, "  ", EXECUTIVE))
    assert repo.records[mrf_id].stage == MRFStage.PENDING_EXECUTIVE_REVIEW

    result = run(workflow.executive_decision(mrf_id, False, "Over budget", EXECUTIVE))
    assert result.record.stage == MRFStage.REJECTED_BY_EXECUTIVE
    assert result.record.rejection_reason == "Over budget"
    assert event_types(result) == [EventType.MRF_REJECTED_BY_EXECUTIVE]
    assert result.events[0].payload["reason"] == "Over budget"


def test_chairman_rejection_has_its_own_stage_and_event():
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input("3000000"), EMPLOYEE)).record.id
    run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))

    result = run(workflow.chairman_decision(mrf_id, False, "Defer to Q3", CHAIRMAN))

    assert result.record.stage == MRFStage.REJECTED_BY_CHAIRMAN
    assert event_types(result) == [EventType.MRF_REJECTED_BY_CHAIRMAN]


def test_only_executives_record_executive_decisions():
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id

    with pytest.raises(Unauthorized):
        run(workflow.executive_decision(mrf_id, True, None, EMPLOYEE))
    with pytest.raises(Unauthorized):
        run(workflow.executive_decision(mrf_id, True, None, CHAIRMAN))


def test_admin_may_act_as_executive():
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id

    result = run(workflow.executive_decision(mrf_id, True, None, make_actor(Role.ADMIN)))

    assert result.record.stage == MRFStage.APPROVED_FOR_PO


def test_chairman_decision_before_executive_fails():
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input("2000000"), EMPLOYEE)).record.id

    with pytest.raises(InvalidStageTransition):
        run(workflow.chairman_decision(mrf_id, True, None, CHAIRMAN))


def test_second_executive_decision_is_refused():
    workflow, repo = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id
    run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))
    audits = len(repo.audit_entries)

    with pytest.raises(InvalidStageTransition):
        run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))

    assert repo.records[mrf_id].stage == MRFStage.APPROVED_FOR_PO
    assert len(repo.audit_entries) == audits


def test_concurrent_decision_on_stale_read_conflicts():
    workflow, repo = build_workflow()
    submitted = run(workflow.submit(request_input(), EMPLOYEE)).record
    run(workflow.executive_decision(submitted.id, False, "Duplicate", EXECUTIVE))

    # A second reviewer still holds the pre-decision snapshot
    repo.stale_reads[submitted.id] = submitted
    with pytest.raises(StaleStateConflict):
        run(workflow.executive_decision(submitted.id, True, None, EXECUTIVE))

    assert repo.records[submitted.id].stage == MRFStage.REJECTED_BY_EXECUTIVE
    assert repo.records[submitted.id].rejection_reason == "Duplicate"


def test_submit_validates_required_fields():
    workflow, repo = build_workflow()

    with pytest.raises(ValidationError):
        run(workflow.submit(request_input(title=""), EMPLOYEE))
    with pytest.raises(ValidationError):
        run(workflow.submit(request_input(quantity=0), EMPLOYEE))
    with pytest.raises(ValidationError):
        run(workflow.submit(request_input(cost="-5"), EMPLOYEE))

    assert repo.records == {}


def test_draft_skips_validation_until_submitted():
    workflow, repo = build_workflow()

    draft = run(workflow.save_draft(MaterialRequestInput(title="Scaffolding"), EMPLOYEE))
    assert draft.stage == MRFStage.DRAFT
    assert repo.records[draft.id].title == "Scaffolding"

    with pytest.raises(ValidationError):
        run(workflow.submit_draft(draft.id, EMPLOYEE))
    assert repo.records[draft.id].stage == MRFStage.DRAFT


def test_submit_draft_moves_to_executive_review():
    workflow, _ = build_workflow()
    draft = run(workflow.save_draft(request_input(), EMPLOYEE))

    result = run(workflow.submit_draft(draft.id, EMPLOYEE))

    assert result.record.stage == MRFStage.PENDING_EXECUTIVE_REVIEW
    assert event_types(result) == [EventType.MRF_SUBMITTED]


def test_only_requester_submits_draft():
    workflow, _ = build_workflow()
    draft = run(workflow.save_draft(request_input(), EMPLOYEE))

    with pytest.raises(Unauthorized):
        run(workflow.submit_draft(draft.id, make_actor(Role.EMPLOYEE, "emp-2")))


def test_resubmit_after_rejection_returns_to_executive_review():
    workflow, repo = build_workflow()
    mrf_id = run(workflow.submit(request_input("1500000"), EMPLOYEE)).record.id
    run(workflow.executive_decision(mrf_id, False, "Get a cheaper quote", EXECUTIVE))

    result = run(
        workflow.resubmit(mrf_id, {"estimated_cost": "900000", "urgency": "low"}, EMPLOYEE)
    )

    stored = repo.records[mrf_id]
    assert stored.stage == MRFStage.PENDING_EXECUTIVE_REVIEW
    assert stored.estimated_cost == Decimal("900000")
    assert stored.urgency == Urgency.LOW
    assert stored.rejection_reason is None
    assert stored.executive_decision is None
    assert event_types(result) == [EventType.MRF_SUBMITTED]

    approved = run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))
    assert approved.record.stage == MRFStage.APPROVED_FOR_PO


def test_resubmit_rules():
    workflow, _ = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id

    with pytest.raises(InvalidStageTransition):
        run(workflow.resubmit(mrf_id, {}, EMPLOYEE))

    run(workflow.executive_decision(mrf_id, False, "No", EXECUTIVE))
    with pytest.raises(Unauthorized):
        run(workflow.resubmit(mrf_id, {}, make_actor(Role.EMPLOYEE, "emp-2")))
    with pytest.raises(ValidationError):
        run(workflow.resubmit(mrf_id, {"stage": "approved_for_po"}, EMPLOYEE))
    with pytest.raises(ValidationError):
        run(workflow.resubmit(mrf_id, {"quantity": 0}, EMPLOYEE))


def test_supply_chain_can_withdraw_request_at_signature():
    workflow, repo = build_workflow()
    seed(repo, MRFStage.PENDING_SUPPLY_CHAIN_SIGNATURE)

    with pytest.raises(ValidationError):
        run(workflow.supply_chain_reject("MRF-seed", None, SUPPLY_CHAIN))

    result = run(workflow.supply_chain_reject("MRF-seed", "Vendor blacklisted", SUPPLY_CHAIN))

    assert result.record.stage == MRFStage.REJECTED_BY_SUPPLY_CHAIN
    assert event_types(result) == [EventType.MRF_REJECTED_BY_SUPPLY_CHAIN]


def test_payment_steps():
    workflow, repo = build_workflow()
    seed(repo, MRFStage.PENDING_FINANCE_PAYMENT)

    with pytest.raises(Unauthorized):
        run(workflow.start_payment("MRF-seed", EMPLOYEE))
    with pytest.raises(InvalidStageTransition):
        run(workflow.complete_payment("MRF-seed", FINANCE))

    started = run(workflow.start_payment("MRF-seed", FINANCE))
    assert started.record.stage == MRFStage.PAYMENT_PROCESSING
    assert event_types(started) == [EventType.PAYMENT_PROCESSING]
    assert started.events[0].payload["po_number"] == "PO-2026-0001"

    completed = run(workflow.complete_payment("MRF-seed", FINANCE))
    assert completed.record.stage == MRFStage.PAYMENT_COMPLETED
    assert event_types(completed) == [EventType.PAYMENT_COMPLETED]


def test_transitions_are_audited():
    workflow, repo = build_workflow()
    mrf_id = run(workflow.submit(request_input(), EMPLOYEE)).record.id
    run(workflow.executive_decision(mrf_id, True, None, EXECUTIVE))

    actions = [entry.action for entry in repo.audit_entries]
    assert actions == ["submit", "executive_approve"]
    last = repo.audit_entries[-1]
    assert last.user_id == EXECUTIVE.id
    assert json.loads(last.changes) == {
        "from": "pending_executive_review",
        "to": "approved_for_po",
    }


def test_get_unknown_request():
    workflow, _ = build_workflow()

    with pytest.raises(NotFound):
        run(workflow.get("missing"))
