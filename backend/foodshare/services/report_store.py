"""Persistence capability used by the food report lifecycle.

Every status change is a conditional update guarded by the status the caller
expects the row to be in. Losing a race shows up as ``NOT_APPLIED`` instead
of silently overwriting the winner.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodshare.core.config import settings
from foodshare.core.exceptions import RemoteServiceError, ResourceNotFound
from foodshare.models.beneficiary import DistributionRecord
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpdateResult(str, Enum):
    APPLIED = "applied"
    NOT_APPLIED = "not_applied"


class ReportStore:
    """SQLAlchemy-backed store for food reports and their aggregates."""

    def __init__(self, db: Session, read_retries: Optional[int] = None):
        self.db = db
        self.read_retries = settings.remote_read_retries if read_retries is None else read_retries

    def _read(self, operation: str, fn: Callable[[], T]) -> T:
        """Run an idempotent read, retrying transient failures."""
        attempts = self.read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except SQLAlchemyError as e:
                self.db.rollback()
                if attempt == attempts:
                    logger.error(f"Read '{operation}' failed after {attempt} attempts: {e}")
                    raise RemoteServiceError("database", f"{operation} failed") from e
                logger.warning(f"Read '{operation}' failed (attempt {attempt}), retrying: {e}")

    def get(self, report_id: int) -> FoodReport:
        report = self._read(
            "get_report",
            lambda: self.db.get(FoodReport, report_id, populate_existing=True),
        )
        if report is None:
            raise ResourceNotFound("FoodReport", report_id)
        return report

    def get_hotel_for_user(self, user_id: int) -> Optional[Hotel]:
        return self._read(
            "get_hotel",
            lambda: self.db.query(Hotel).filter(Hotel.user_id == user_id).first(),
        )

    def get_agent_for_user(self, user_id: int) -> Optional[DeliveryAgent]:
        return self._read(
            "get_agent",
            lambda: self.db.query(DeliveryAgent).filter(DeliveryAgent.user_id == user_id).first(),
        )

    def get_agent(self, agent_id: int) -> DeliveryAgent:
        agent = self._read("get_agent", lambda: self.db.get(DeliveryAgent, agent_id))
        if agent is None:
            raise ResourceNotFound("DeliveryAgent", agent_id)
        return agent

    def list_reports(
        self,
        *,
        hotel_id: Optional[int] = None,
        agent_id: Optional[int] = None,
        statuses: Optional[List[ReportStatus]] = None,
    ) -> List[FoodReport]:
        def query():
            q = self.db.query(FoodReport)
            if hotel_id is not None:
                q = q.filter(FoodReport.hotel_id == hotel_id)
            if agent_id is not None:
                q = q.filter(FoodReport.assigned_agent_id == agent_id)
            if statuses:
                q = q.filter(FoodReport.status.in_(statuses))
            return q.order_by(FoodReport.created_at.desc(), FoodReport.id.desc()).all()

        return self._read("list_reports", query)

    def add(self, report: FoodReport) -> FoodReport:
        self.db.add(report)
        self.commit()
        self.db.refresh(report)
        return report

    def conditional_update(
        self, report_id: int, expected_status: ReportStatus, fields: Dict[str, Any]
    ) -> UpdateResult:
        """Apply ``fields`` only if the row is still in ``expected_status``.

        The change is flushed but not committed, so aggregate updates made
        afterwards land in the same transaction.
        """
        stmt = (
            update(FoodReport)
            .where(FoodReport.id == report_id, FoodReport.status == expected_status)
            .values(**fields, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RemoteServiceError("database", "conditional update failed") from e

        if result.rowcount == 1:
            return UpdateResult.APPLIED
        return UpdateResult.NOT_APPLIED

    def add_food_saved(self, hotel_id: int, quantity: int) -> None:
        self._execute(
            update(Hotel)
            .where(Hotel.id == hotel_id)
            .values(total_food_saved=Hotel.total_food_saved + quantity)
            .execution_options(synchronize_session=False)
        )

    def add_delivery(self, agent_id: int) -> None:
        self._execute(
            update(DeliveryAgent)
            .where(DeliveryAgent.id == agent_id)
            .values(total_deliveries=DeliveryAgent.total_deliveries + 1)
            .execution_options(synchronize_session=False)
        )

    def delete_reports(self, statuses: Optional[List[ReportStatus]] = None) -> int:
        """Delete reports (and their distribution records) in ``statuses``, or all."""
        ids = select(FoodReport.id)
        if statuses:
            ids = ids.where(FoodReport.status.in_(statuses))
        self._execute(
            delete(DistributionRecord)
            .where(DistributionRecord.food_report_id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        stmt = delete(FoodReport).execution_options(synchronize_session=False)
        if statuses:
            stmt = stmt.where(FoodReport.status.in_(statuses))
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RemoteServiceError("database", "delete failed") from e
        return result.rowcount

    def _execute(self, stmt) -> None:
        try:
            self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RemoteServiceError("database", "update failed") from e

    def commit(self) -> None:
        """Commit the unit of work. Mutations are never retried."""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Commit failed: {e}")
            raise RemoteServiceError("database", "commit failed") from e

    def rollback(self) -> None:
        self.db.rollback()
