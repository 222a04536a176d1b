"""
Role-based notification rules.

Adding a recipient role or a new event is a change to this table only.
"""
from app.notifications.domain.models import NotificationRule, Priority
from app.procurement.domain.events import EventType
from app.procurement.domain.models import Role


NOTIFICATION_RULES = (
    # MRN to MRF conversion
    NotificationRule(
        event=EventType.MRN_CONVERTED_TO_MRF,
        roles=(Role.EMPLOYEE,),
        title="MRN Converted to MRF",
        message="Your material request {mrn_id} has been converted to MRF {mrf_id}",
        link="/dashboard",
        priority=Priority.MEDIUM,
    ),
    NotificationRule(
        event=EventType.MRF_SUBMITTED,
        roles=(Role.EXECUTIVE,),
        title="New MRF Awaiting Review",
        message="MRF {mrf_id} ({mrf_title}) from {requester_name} is awaiting your review",
        link="/executive-dashboard",
        priority=Priority.MEDIUM,
    ),
    # Executive approval
    NotificationRule(
        event=EventType.MRF_APPROVED_BY_EXECUTIVE,
        roles=(Role.EMPLOYEE,),
        title="MRF Approved",
        message="Your MRF {mrf_id} has been approved by Executive",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.MRF_APPROVED_BY_EXECUTIVE,
        roles=(Role.PROCUREMENT,),
        title="MRF Ready for PO",
        message="MRF {mrf_id} approved - Please upload Purchase Order",
        link="/procurement",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.MRF_REJECTED_BY_EXECUTIVE,
        roles=(Role.EMPLOYEE,),
        title="MRF Rejected",
        message="Your MRF {mrf_id} was rejected: {reason}",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    # High-value requests
    NotificationRule(
        event=EventType.MRF_SENT_TO_CHAIRMAN,
        roles=(Role.CHAIRMAN,),
        title="High-Value MRF Approval Required",
        message="MRF {mrf_id} (₦{amount}) requires your approval",
        link="/chairman-dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.MRF_APPROVED_BY_CHAIRMAN,
        roles=(Role.EMPLOYEE, Role.PROCUREMENT),
        title="MRF Approved by Chairman",
        message="High-value MRF {mrf_id} has been approved by Chairman",
        link="/procurement",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.MRF_REJECTED_BY_CHAIRMAN,
        roles=(Role.EMPLOYEE, Role.EXECUTIVE),
        title="MRF Rejected by Chairman",
        message="High-value MRF {mrf_id} was rejected by Chairman: {reason}",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.MRF_REJECTED_BY_SUPPLY_CHAIN,
        roles=(Role.EMPLOYEE, Role.PROCUREMENT),
        title="MRF Rejected by Supply Chain",
        message="MRF {mrf_id} was rejected at signature: {reason}",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    # Purchase orders
    NotificationRule(
        event=EventType.PO_GENERATED,
        roles=(Role.EMPLOYEE,),
        title="Purchase Order Generated",
        message="PO {po_number} has been generated for your MRF {mrf_id}",
        link="/dashboard",
        priority=Priority.MEDIUM,
    ),
    NotificationRule(
        event=EventType.PO_SENT_TO_SUPPLY_CHAIN,
        roles=(Role.EMPLOYEE, Role.SUPPLY_CHAIN_DIRECTOR),
        title="PO Under Review",
        message="Purchase Order {po_number} is now under review by Supply Chain",
        link="/dashboard",
        priority=Priority.MEDIUM,
    ),
    NotificationRule(
        event=EventType.PO_REJECTED_BY_SUPPLY_CHAIN,
        roles=(Role.PROCUREMENT, Role.EMPLOYEE),
        title="PO Rejected",
        message="PO {po_number} rejected by Supply Chain - Revision required",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.PO_SIGNED,
        roles=(Role.EMPLOYEE, Role.PROCUREMENT),
        title="PO Approved & Signed",
        message="Purchase Order {po_number} has been approved and signed",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.PO_SENT_TO_FINANCE,
        roles=(Role.EMPLOYEE, Role.FINANCE),
        title="PO Sent to Finance",
        message="Purchase Order {po_number} sent to Finance for payment processing",
        link="/dashboard",
        priority=Priority.MEDIUM,
    ),
    # Goods receipt
    NotificationRule(
        event=EventType.GRN_CREATED,
        roles=(Role.WAREHOUSE, Role.PROCUREMENT),
        title="Goods Received",
        message="{grn_number} for PO {po_number} has been created and is pending inspection",
        link="/warehouse",
        priority=Priority.MEDIUM,
    ),
    NotificationRule(
        event=EventType.GRN_INSPECTED,
        roles=(Role.PROCUREMENT,),
        title="Goods Inspected",
        message="Goods on {grn_number} for PO {po_number} have been inspected and approved",
        link="/warehouse",
        priority=Priority.LOW,
    ),
    NotificationRule(
        event=EventType.GRN_SENT_TO_FINANCE,
        roles=(Role.FINANCE,),
        title="GRN Ready for Payment",
        message="{grn_number} (₦{amount}) for PO {po_number} is awaiting payment",
        link="/finance",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.GRN_REJECTED,
        roles=(Role.PROCUREMENT, Role.WAREHOUSE),
        title="GRN Rejected",
        message="{grn_number} for PO {po_number} was rejected: {reason}",
        link="/warehouse",
        priority=Priority.HIGH,
    ),
    # Payments
    NotificationRule(
        event=EventType.PAYMENT_PROCESSING,
        roles=(Role.EMPLOYEE,),
        title="Payment Processing",
        message="Payment for PO {po_number} is being processed by Finance",
        link="/dashboard",
        priority=Priority.MEDIUM,
    ),
    NotificationRule(
        event=EventType.PAYMENT_APPROVED_BY_CHAIRMAN,
        roles=(Role.EMPLOYEE, Role.FINANCE, Role.PROCUREMENT),
        title="Payment Approved",
        message="Payment for PO {po_number} has been approved by Chairman",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
    NotificationRule(
        event=EventType.PAYMENT_COMPLETED,
        roles=(
            Role.EMPLOYEE,
            Role.PROCUREMENT,
            Role.SUPPLY_CHAIN_DIRECTOR,
            Role.FINANCE,
            Role.EXECUTIVE,
            Role.CHAIRMAN,
        ),
        title="Payment Completed",
        message="Payment for PO {po_number} has been completed - Order fulfilled",
        link="/dashboard",
        priority=Priority.HIGH,
    ),
)
