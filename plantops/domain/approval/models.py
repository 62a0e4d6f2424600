from sqlalchemy import CheckConstraint, Column, Index, String, Text
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class ApprovalRequest(Base):
    """Persisted approval request. Rows are never deleted (audit trail)."""

    __tablename__ = "approval_requests"

    id = Column(String(32), primary_key=True)  # uuid4 hex
    domain_type = Column(String(64), nullable=False)
    action = Column(String(16), nullable=False)
    target_record_id = Column(String(128), nullable=False)
    plant_scope = Column(String(16), nullable=False)
    snapshot = Column(Text, nullable=False)  # JSON blob
    reason = Column(Text, nullable=False)
    submitted_by = Column(String(128), nullable=False)
    submitted_at = Column(String(40), nullable=False)  # ISO-8601
    status = Column(String(16), nullable=False, default=ApprovalStatus.PENDING.value)
    decided_by = Column(String(128), nullable=True)
    decided_at = Column(String(40), nullable=True)
    reject_reason = Column(Text, nullable=True)
    applied_at = Column(String(40), nullable=True)
    apply_error = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approval_requests_status",
        ),
        CheckConstraint(
            "action IN ('edit', 'delete')",
            name="ck_approval_requests_action",
        ),
        Index("ix_approval_requests_status", "status"),
        Index("ix_approval_requests_plant_scope", "plant_scope"),
        Index("ix_approval_requests_submitted_at", "submitted_at"),
    )
