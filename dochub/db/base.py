from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, event
from sqlalchemy.orm import ORMExecuteState, Session, declarative_base, with_loader_criteria

Base = declarative_base()

# Execution option that lifts the soft-delete visibility filter for one statement
INCLUDE_DELETED = "include_deleted"


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SoftDeleteMixin:
    """Rows are hidden from every ORM select once flagged as deleted.

    Pass ``execution_options(include_deleted=True)`` on a statement to see them.
    """

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime)

    def mark_deleted(self, when: datetime | None = None):
        self.is_deleted = True
        self.deleted_at = when or datetime.utcnow()


@event.listens_for(Session, "do_orm_execute")
def _hide_soft_deleted_rows(execute_state: ORMExecuteState):
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
        and not execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.is_deleted.is_(False),
                include_aliases=True,
            )
        )
