from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from plantops.api.core.container import Container, get_container
from plantops.db.connection import get_db
from plantops.domain.approval import ApprovalReviewService, MutationGate
from plantops.domain.users import Plant, User


def get_current_user(
    x_user: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_plant: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> User:
    """Identity forwarded by the session gateway in front of this service."""
    if not x_user or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing user identity")
    try:
        plant = Plant((x_user_plant or Plant.NPK2.value).upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown user plant") from None
    # Unknown roles pass through; the policy resolver treats them as read-only.
    return User(username=x_user, role=x_user_role, plant=plant, name=x_user_name)


def get_mutation_gate(
    db: Session = Depends(get_db),
    container: Container = Depends(get_container),
) -> MutationGate:
    return container.mutation_gate(db)


def get_review_service(
    db: Session = Depends(get_db),
    container: Container = Depends(get_container),
) -> ApprovalReviewService:
    return container.review_service(db)
