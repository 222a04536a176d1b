"""
PostgreSQL Database Models - SQLAlchemy ORM
All tables for the Procurement Workflow System
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, DateTime, Date, Boolean, Integer, Numeric,
    ForeignKey, Identity, Index, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
import uuid as uuid_lib

from .connection import Base


# ==================== USER MODEL ====================

class User(Base):
    """User table - stores all system users"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid_lib.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_users_role_active', 'role', 'is_active'),
    )


# ==================== MATERIAL REQUEST MODEL ====================

class MaterialRequest(Base):
    """Material request (MRF) - approval chain record"""
    __tablename__ = "material_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0)
    urgency: Mapped[str] = mapped_column(String(20), default="Medium")
    requester_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    requester_name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stage: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    executive_decision: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    chairman_decision: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    po_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    po_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_mrf_stage_created_at', 'stage', 'created_at'),
        Index('idx_mrf_requester_stage', 'requester_id', 'stage'),
    )


# ==================== PURCHASE ORDER MODEL ====================

class PurchaseOrder(Base):
    """Purchase order - issued against one approved material request"""
    __tablename__ = "purchase_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    mrf_id: Mapped[str] = mapped_column(String(36), ForeignKey("material_requests.id"), nullable=False, index=True)
    stage: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vendor_ids: Mapped[list] = mapped_column(JSON, default=list)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_ref: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    signed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# ==================== GOODS RECEIVED NOTE MODELS ====================

class GoodsReceivedNote(Base):
    """Goods received note - receipt, inspection and payment tracking"""
    __tablename__ = "goods_received_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    grn_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    po_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default="none")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0)
    warehouse_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    invoice_ref: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    received_by: Mapped[str] = mapped_column(String(255), nullable=False)
    inspected_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    inspection_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    finance_received_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    finance_processed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class GoodsReceivedItem(Base):
    """Goods received items - individual lines on a GRN"""
    __tablename__ = "goods_received_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid_lib.uuid4()))
    grn_id: Mapped[str] = mapped_column(String(36), ForeignKey("goods_received_notes.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    condition: Mapped[str] = mapped_column(String(20), default="Good")
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_index: Mapped[int] = mapped_column(Integer, default=0)  # Order on the note


# ==================== NOTIFICATION MODELS ====================

class AppNotification(Base):
    """In-app notifications - one row per recipient per matching rule"""
    __tablename__ = "app_notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    recipient_role: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    event: Mapped[str] = mapped_column(String(50), nullable=False)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False)
    rule_key: Mapped[str] = mapped_column(String(255), nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    seq: Mapped[int] = mapped_column(Integer, Identity(), nullable=False, index=True)  # Feed order
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        UniqueConstraint('recipient_id', 'event_id', 'rule_key', name='uq_notification_event_rule'),
        Index('idx_notifications_recipient_read', 'recipient_id', 'is_read'),
    )


class NotificationPreference(Base):
    """Per-user notification toggles"""
    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
    email: Mapped[bool] = mapped_column(Boolean, default=True)
    in_app: Mapped[bool] = mapped_column(Boolean, default=True)
    sound: Mapped[bool] = mapped_column(Boolean, default=False)
    muted_events: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ==================== SEQUENCE COUNTER MODEL ====================

class SequenceCounter(Base):
    """Named counters for document numbers (one row per prefix and year)"""
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ==================== AUDIT LOG MODEL ====================

class AuditLog(Base):
    """Audit logs - tracks every workflow transition"""
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid_lib.uuid4()))
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON object
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_role: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_entity_timestamp', 'entity_type', 'timestamp'),
    )
