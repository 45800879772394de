"""Data access layer for stored state documents"""

from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from coop_ledger.infrastructure.database.models import CoopStateRecord


class StateRepository:
    """Repository for per-user state documents"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[CoopStateRecord]:
        return (
            self.db.query(CoopStateRecord)
            .filter(CoopStateRecord.user_id == user_id)
            .first()
        )

    def get_data(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stored document for a user, or None if they never saved"""
        record = self.get(user_id)
        return None if record is None else record.data

    def upsert(self, user_id: str, data: Dict[str, Any]) -> CoopStateRecord:
        """Insert or replace the user's document (last write wins)"""
        record = self.get(user_id)
        if record is None:
            record = CoopStateRecord(user_id=user_id, data=data)
            self.db.add(record)
        else:
            record.data = data
        self.db.flush()  # Surface constraint errors inside the caller's transaction
        return record
