# ============================================================
# DB access layer
# ============================================================
from typing import Protocol, Any, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
import json
import uuid

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from plantops.core.errors import (
    AlreadyDecided,
    RequestNotFound,
    StorageError,
    ValidationError,
)
from .models import ApprovalStatus
from .entities import (
    ApprovalFilters,
    ApprovalRequestEntity as ApprovalRequest,
    Pagination,
    Sorting,
    PageResult,
    PageMeta,
    StatusCounts,
)

class ApprovalRequestRepositoryProtocol(Protocol):
    def create(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new pending request"""
        ...

    def get(self, request_id: str) -> ApprovalRequest:
        """Get a request by id"""
        ...

    def list(
            self,
            filters: ApprovalFilters,
            paging: Pagination,
            sorting: Sorting,
    ) -> PageResult:
        """List requests, newest first by default"""
        ...

    def decide(
            self,
            request_id: str,
            outcome: ApprovalStatus,
            decided_by: str,
            reject_reason: str | None = None,
    ) -> ApprovalRequest:
        """Move a pending request to approved or rejected"""
        ...

    def mark_applied(self, request_id: str) -> ApprovalRequest:
        """Record that the approved mutation reached the record"""
        ...

    def mark_apply_failed(self, request_id: str, error: str) -> ApprovalRequest:
        """Record that the approved mutation could not be applied"""
        ...

    def count_by_status(
            self,
            plant_scope: str | None = None,
            submitted_by: str | None = None,
    ) -> StatusCounts:
        """Count requests per status"""
        ...


class ApprovalRequestRepository(ApprovalRequestRepositoryProtocol):
    # Allowed sort columns at persistence layer (defense in depth)
    _SORT_COLUMNS = {
        "submitted_at": "submitted_at",
        "status": "status",
        "domain_type": "domain_type",
        "decided_at": "decided_at",
    }

    def __init__(self, db: Session):
        self.db = db

    def create(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new pending request.

        Assigns `id` and `submitted_at`. The snapshot is stored as JSON, which
        also detaches it from the caller's (possibly still mutable) object.
        Returns only once the row is committed.
        """
        if not request.reason or not request.reason.strip():
            raise ValidationError(
                "A reason is required for an approval request",
                domain_type=request.domain_type,
            )
        if not isinstance(request.snapshot, dict):
            raise ValidationError(
                "Record snapshot must be a JSON object",
                domain_type=request.domain_type,
            )
        try:
            snapshot_json = json.dumps(request.snapshot, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Record snapshot is not serializable: {exc}",
                domain_type=request.domain_type,
            ) from exc

        request_id = uuid.uuid4().hex
        submitted_at = _now()

        query = text("""
                INSERT INTO approval_requests (
                    id,
                    domain_type,
                    action,
                    target_record_id,
                    plant_scope,
                    snapshot,
                    reason,
                    submitted_by,
                    submitted_at,
                    status
                ) VALUES (
                    :id,
                    :domain_type,
                    :action,
                    :target_record_id,
                    :plant_scope,
                    :snapshot,
                    :reason,
                    :submitted_by,
                    :submitted_at,
                    :status
                )
                """)
        params = {
            "id": request_id,
            "domain_type": request.domain_type,
            "action": request.action,
            "target_record_id": request.target_record_id,
            "plant_scope": request.plant_scope,
            "snapshot": snapshot_json,
            "reason": request.reason.strip(),
            "submitted_by": request.submitted_by,
            "submitted_at": submitted_at.isoformat(),
            "status": ApprovalStatus.PENDING.value,
        }

        with self._storage(domain_type=request.domain_type):
            self.db.execute(query, params)
            self.db.commit()

        return ApprovalRequest(
            id=request_id,
            domain_type=request.domain_type,
            action=request.action,
            target_record_id=request.target_record_id,
            plant_scope=request.plant_scope,
            snapshot=json.loads(snapshot_json),
            reason=params["reason"],
            submitted_by=request.submitted_by,
            submitted_at=submitted_at,
            status=ApprovalStatus.PENDING.value,
        )

    def get(self, request_id: str) -> ApprovalRequest:
        """Get a request by id"""
        query = text("""
                SELECT * FROM approval_requests
                WHERE id = :id
                """)

        with self._storage(request_id=request_id):
            row = self.db.execute(query, {"id": request_id}).mappings().one_or_none()

        if row is None:
            raise RequestNotFound(
                f"Approval request '{request_id}' not found",
                request_id=request_id,
            )
        return _row_to_entity(row)

    def list(
            self,
            filters: ApprovalFilters,
            paging: Pagination,
            sorting: Sorting,
    ) -> PageResult:
        """
        Retrieve approval requests matching the given filters.

        All filters are optional.
        Pagination is always applied.
        """
        conditions: list[str] = []
        params: dict[str, object] = {}

        # --- Filters ---
        if filters.status:
            conditions.append("status = :status")
            params["status"] = filters.status

        if filters.domain_type:
            conditions.append("domain_type = :domain_type")
            params["domain_type"] = filters.domain_type

        if filters.plant_scope:
            conditions.append("plant_scope = :plant_scope")
            params["plant_scope"] = filters.plant_scope

        if filters.submitted_by:
            conditions.append("submitted_by = :submitted_by")
            params["submitted_by"] = filters.submitted_by

        if filters.action:
            conditions.append("action = :action")
            params["action"] = filters.action

        if filters.search:
            conditions.append(
                "(LOWER(reason) LIKE :search ESCAPE '!'"
                " OR LOWER(submitted_by) LIKE :search ESCAPE '!'"
                " OR LOWER(target_record_id) LIKE :search ESCAPE '!')"
            )
            params["search"] = f"%{_escape_like(filters.search.strip().lower())}%"

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        # --- Total Count ---
        count_query = text(f"""
            SELECT COUNT(*) AS total
            FROM approval_requests
            {where_clause}
        """)

        # ORDER BY: use allow-list mapping (cannot bind column names safely)
        sort_col = self._SORT_COLUMNS.get(sorting.sort_by, "submitted_at")
        sort_dir = "ASC" if sorting.sort_order == "asc" else "DESC"
        order_clause = f"ORDER BY {sort_col} {sort_dir}, submitted_at {sort_dir}, id {sort_dir}"

        # --- Data Query ---
        data_query = text(f"""
            SELECT *
            FROM approval_requests
            {where_clause}
            {order_clause}
            LIMIT :limit
            OFFSET :offset
        """)

        with self._storage():
            total = int(self.db.execute(count_query, params).scalar_one())
            result = self.db.execute(
                data_query,
                {**params, "limit": paging.limit, "offset": paging.offset},
            )
            records = [_row_to_entity(row) for row in result.mappings()]

        # --- Pagination Metadata ---
        meta = PageMeta(
            total=total,
            limit=paging.limit,
            offset=paging.offset,
            has_next=(paging.offset + paging.limit) < total,
            has_previous=paging.offset > 0,
        )

        return PageResult(
            data=records,
            meta=meta
        )

    def decide(
            self,
            request_id: str,
            outcome: ApprovalStatus,
            decided_by: str,
            reject_reason: str | None = None,
    ) -> ApprovalRequest:
        """Move a pending request to approved or rejected.

        The status guard lives in the WHERE clause, so of two concurrent
        decisions exactly one updates the row; the other gets AlreadyDecided.
        """
        outcome = ApprovalStatus(outcome)
        if outcome == ApprovalStatus.PENDING:
            raise ValidationError(
                "A decision must be approved or rejected",
                request_id=request_id,
            )
        if outcome == ApprovalStatus.REJECTED:
            if not reject_reason or not reject_reason.strip():
                raise ValidationError(
                    "A reason is required to reject a request",
                    request_id=request_id,
                )
            reject_reason = reject_reason.strip()
        else:
            reject_reason = None

        query = text("""
                UPDATE approval_requests
                SET
                    status = :status,
                    decided_by = :decided_by,
                    decided_at = :decided_at,
                    reject_reason = :reject_reason
                WHERE id = :id
                  AND status = 'pending'
                """)
        params = {
            "id": request_id,
            "status": outcome.value,
            "decided_by": decided_by,
            "decided_at": _now().isoformat(),
            "reject_reason": reject_reason,
        }

        with self._storage(request_id=request_id):
            updated = self.db.execute(query, params).rowcount
            self.db.commit()

        if updated == 0:
            current = self.get(request_id)
            raise AlreadyDecided(
                f"Approval request '{request_id}' is already {current.status}",
                request_id=request_id,
                domain_type=current.domain_type,
            )

        return self.get(request_id)

    def mark_applied(self, request_id: str) -> ApprovalRequest:
        """Record that the approved mutation reached the record"""
        query = text("""
                UPDATE approval_requests
                SET
                    applied_at = :applied_at,
                    apply_error = NULL
                WHERE id = :id
                  AND status = 'approved'
                  AND applied_at IS NULL
                """)
        params = {"id": request_id, "applied_at": _now().isoformat()}

        with self._storage(request_id=request_id):
            self.db.execute(query, params)
            self.db.commit()

        return self.get(request_id)

    def mark_apply_failed(self, request_id: str, error: str) -> ApprovalRequest:
        """Record that the approved mutation could not be applied"""
        query = text("""
                UPDATE approval_requests
                SET apply_error = :apply_error
                WHERE id = :id
                  AND status = 'approved'
                  AND applied_at IS NULL
                """)

        with self._storage(request_id=request_id):
            self.db.execute(query, {"id": request_id, "apply_error": error})
            self.db.commit()

        return self.get(request_id)

    def count_by_status(
            self,
            plant_scope: str | None = None,
            submitted_by: str | None = None,
    ) -> StatusCounts:
        """Count requests per status, plus approved ones still awaiting apply."""
        conditions: list[str] = []
        params: dict[str, object] = {}
        if plant_scope:
            conditions.append("plant_scope = :plant_scope")
            params["plant_scope"] = plant_scope
        if submitted_by:
            conditions.append("submitted_by = :submitted_by")
            params["submitted_by"] = submitted_by

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = text(f"""
            SELECT
                status,
                COUNT(*) AS total,
                SUM(CASE WHEN applied_at IS NULL THEN 1 ELSE 0 END) AS unapplied
            FROM approval_requests
            {where_clause}
            GROUP BY status
        """)

        with self._storage():
            rows = self.db.execute(query, params).mappings().all()

        counts = {row["status"]: row for row in rows}

        def _total(status: ApprovalStatus) -> int:
            row = counts.get(status.value)
            return int(row["total"]) if row else 0

        approved = counts.get(ApprovalStatus.APPROVED.value)
        return StatusCounts(
            pending=_total(ApprovalStatus.PENDING),
            approved=_total(ApprovalStatus.APPROVED),
            rejected=_total(ApprovalStatus.REJECTED),
            awaiting_apply=int(approved["unapplied"] or 0) if approved else 0,
        )

    @contextmanager
    def _storage(
            self,
            *,
            request_id: str | None = None,
            domain_type: str | None = None,
    ) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(
                f"Approval request store unavailable: {exc}",
                request_id=request_id,
                domain_type=domain_type,
            ) from exc


# ------------------------------
# Helper functions
# ------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _escape_like(value: str) -> str:
    """Make `%` and `_` match literally under `ESCAPE '!'`."""
    return value.replace("!", "!!").replace("%", "!%").replace("_", "!_")


def _parse_ts(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _row_to_entity(row: Any) -> ApprovalRequest:
    return ApprovalRequest(
        id=row["id"],
        domain_type=row["domain_type"],
        action=row["action"],
        target_record_id=row["target_record_id"],
        plant_scope=row["plant_scope"],
        snapshot=json.loads(row["snapshot"]),
        reason=row["reason"],
        submitted_by=row["submitted_by"],
        submitted_at=_parse_ts(row["submitted_at"]),
        status=row["status"],
        decided_by=row["decided_by"],
        decided_at=_parse_ts(row["decided_at"]),
        reject_reason=row["reject_reason"],
        applied_at=_parse_ts(row["applied_at"]),
        apply_error=row["apply_error"],
    )
