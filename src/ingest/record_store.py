"""
Report record store backed by SQLAlchemy
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from src.database.connection import DatabaseConnection
from src.database.models import Report
from src.reporting.errors import PersistenceFailed

logger = logging.getLogger(__name__)


class SqlReportStore:
    """Insert-only writer and reader of Report rows."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def insert(self, values: Dict[str, Any]) -> Report:
        """
        Insert one report in its own transaction.

        Raises:
            PersistenceFailed: the row was not committed
        """
        try:
            with self.db.get_session() as session:
                report = Report(**values)
                session.add(report)
                session.flush()
        except SQLAlchemyError as e:
            raise PersistenceFailed(f"Database error: {e}")

        logger.info(f"Report {report.id} persisted")
        return report

    def list_reports(self, limit: Optional[int] = None) -> List[Report]:
        """All current reports, newest first."""
        query = select(Report).order_by(Report.created_at.desc())
        if limit:
            query = query.limit(limit)
        with self.db.get_session() as session:
            return list(session.scalars(query))

    def count(self) -> int:
        with self.db.get_session() as session:
            return session.scalar(select(func.count()).select_from(Report))
