from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.models.user import User, UserOperatorAffiliation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatorScope:
    user_id: int
    operator_id: int
    role: str
    auth_subject: str
    affiliation_type: str | None = None


def resolve_operator_scope(db: Session, auth_subject: str) -> OperatorScope:
    """auth subject -> user -> the single operator this request acts for.

    Several active affiliations are only allowed when the user has already
    picked one (``active_operator_id``); otherwise the caller must choose.
    """
    user = db.execute(select(User).where(User.auth_subject == auth_subject)).scalar_one_or_none()
    if not user:
        raise NotFoundException("User not found", code="user_not_found")
    if not user.is_active:
        raise ForbiddenException("User is inactive", code="user_inactive")

    affiliations = db.execute(
        select(UserOperatorAffiliation)
        .where(UserOperatorAffiliation.user_id == user.user_id, UserOperatorAffiliation.active.is_(True))
        .order_by(
            UserOperatorAffiliation.updated_at.desc(),
            UserOperatorAffiliation.created_at.desc(),
            UserOperatorAffiliation.affiliation_id.desc(),
        )
    ).scalars().all()

    if not affiliations:
        raise ForbiddenException("User has no active operator affiliation", code="no_operator_affiliation")

    if len(affiliations) == 1:
        only = affiliations[0].operator_id
        if not user.active_operator_id:
            try:
                user.active_operator_id = only
                user.updated_at = datetime.now(timezone.utc)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.exception("auto-set active_operator_id failed user_id=%s", user.user_id)
        return OperatorScope(
            user_id=user.user_id,
            operator_id=only,
            role=user.role,
            auth_subject=auth_subject,
            affiliation_type=affiliations[0].affiliation_type,
        )

    active = user.active_operator_id
    if active:
        for a in affiliations:
            if a.operator_id == active:
                return OperatorScope(
                    user_id=user.user_id,
                    operator_id=a.operator_id,
                    role=user.role,
                    auth_subject=auth_subject,
                    affiliation_type=a.affiliation_type,
                )

    raise ConflictException(
        "User has multiple active operator affiliations; operator selection required",
        code="operator_selection_required",
        details={
            "affiliation_count": len(affiliations),
            "active_operator_id": str(active) if active else None,
        },
    )
