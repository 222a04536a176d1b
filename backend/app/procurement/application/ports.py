from typing import Optional, Protocol

from app.procurement.domain.models import (
    AuditEntry,
    GoodsReceivedNote,
    GRNStatus,
    MaterialRequest,
    MRFStage,
    POStage,
    PurchaseOrder,
)


class AuditLogRepository(Protocol):
    async def add_audit_entry(self, entry: AuditEntry) -> None:
        ...

    async def commit(self) -> None:
        ...


class NumberSequence(Protocol):
    async def next_sequence_value(self, name: str) -> int:
        """Allocate the next value of a named counter, starting at 1."""
        ...


class MaterialRequestRepository(AuditLogRepository, Protocol):
    async def get(self, mrf_id: str) -> Optional[MaterialRequest]:
        ...

    async def add(self, request: MaterialRequest) -> None:
        ...

    async def write_if_stage(
        self,
        mrf_id: str,
        expected_stage: MRFStage,
        request: MaterialRequest,
    ) -> None:
        """Persist ``request`` only if the stored stage is still ``expected_stage``.

        Raises StaleStateConflict when the stage moved on and NotFound when the
        record is gone.
        """
        ...


class PurchaseOrderRepository(AuditLogRepository, NumberSequence, Protocol):
    async def get(self, po_id: str) -> Optional[PurchaseOrder]:
        ...

    async def add(self, order: PurchaseOrder) -> None:
        ...

    async def write_if_stage(
        self,
        po_id: str,
        expected_stage: POStage,
        order: PurchaseOrder,
    ) -> None:
        ...


class GoodsReceivedRepository(AuditLogRepository, NumberSequence, Protocol):
    async def get(self, grn_id: str) -> Optional[GoodsReceivedNote]:
        ...

    async def add(self, grn: GoodsReceivedNote) -> None:
        ...

    async def write_if_stage(
        self,
        grn_id: str,
        expected_stage: GRNStatus,
        grn: GoodsReceivedNote,
    ) -> None:
        ...
