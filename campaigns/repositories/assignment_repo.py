import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from campaigns.core.errors import StorageConflict
from campaigns.models.orm.assignment import AssignmentORM


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_assignment(self, campaign_id: str, visitor_id: str) -> Optional[AssignmentORM]:
        """Retrieves the assignment of a visitor in a specific campaign, with its variant."""
        stmt = (
            select(AssignmentORM)
            .where(
                AssignmentORM.campaign_id == campaign_id,
                AssignmentORM.visitor_id == visitor_id,
            )
            .options(joinedload(AssignmentORM.variant))
            # Always reflect the stored row, not a copy cached in the session
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).one_or_none()

    def create_assignment(self, fields: dict[str, Any]) -> AssignmentORM:
        """
        Inserts a new assignment and flushes it so the (campaign_id, visitor_id)
        constraint is checked immediately.

        Raises:
            StorageConflict: another request already assigned this visitor.
                The session must be rolled back before it is used again.
        """
        db_assignment = AssignmentORM(
            assignment_id=str(uuid.uuid4()),
            assigned_at=datetime.utcnow(),
            **fields,
        )
        try:
            self.db.add(db_assignment)
            self.db.flush()
        except IntegrityError as e:
            raise StorageConflict(
                f"Assignment already exists for visitor {fields.get('visitor_id')} "
                f"in campaign {fields.get('campaign_id')}"
            ) from e

        return db_assignment

    def update_assignment(
        self, assignment_id: str, fields: dict[str, Any], only_if_unconverted: bool = False
    ) -> bool:
        """
        Updates an assignment in place. With ``only_if_unconverted`` the row is
        only touched while ``has_converted`` is still false, which makes the
        conversion flag flip happen at most once under concurrency.

        Returns whether a row was updated.
        """
        stmt = update(AssignmentORM).where(AssignmentORM.assignment_id == assignment_id)
        if only_if_unconverted:
            stmt = stmt.where(AssignmentORM.has_converted.is_(False))

        result = self.db.execute(
            stmt.values(**fields).execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
