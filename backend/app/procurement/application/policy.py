from typing import Iterable

from app.procurement.domain.errors import Unauthorized
from app.procurement.domain.models import Actor, Role


EXECUTIVE_REVIEWERS = frozenset({Role.EXECUTIVE, Role.ADMIN})
CHAIRMAN_REVIEWERS = frozenset({Role.CHAIRMAN, Role.ADMIN})
PO_ISSUERS = frozenset({Role.PROCUREMENT, Role.ADMIN})
SUPPLY_CHAIN_SIGNERS = frozenset({Role.SUPPLY_CHAIN_DIRECTOR, Role.ADMIN})
WAREHOUSE_HANDLERS = frozenset(
    {Role.WAREHOUSE, Role.LOGISTICS, Role.PROCUREMENT, Role.ADMIN}
)
PAYMENT_HANDLERS = frozenset({Role.FINANCE, Role.ADMIN, Role.CHAIRMAN})


def require_role(actor: Actor, allowed: Iterable[Role], action: str) -> None:
    if actor.role not in allowed:
        raise Unauthorized(f"Role '{actor.role.value}' may not {action}")
