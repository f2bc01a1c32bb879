"""
Keyed access to Session rows.

Every mutating call must run inside storage.transaction(); the store itself
never commits, so the caller decides what belongs to one unit of work.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from models.base_model import utcnow
from models.db_storage import DBStorage
from models.session import Session


class SessionStore:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    def transaction(self):
        return self.storage.transaction()

    @property
    def _session(self):
        return self.storage.get_session()

    def find_by_token(self, refresh_token: str) -> Optional[Session]:
        return self._session.query(Session).filter(Session.refresh_token == refresh_token).first()

    def find_by_id(self, session_id: str) -> Optional[Session]:
        return self.storage.get(Session, session_id)

    def create(
        self,
        user_id: str,
        refresh_token: str,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> Session:
        row = Session(
            user_id=user_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
            user_agent=user_agent,
            client_ip=client_ip,
        )
        self.storage.new(row)
        # flush now so a duplicate token fails inside the caller's transaction
        self._session.flush()
        return row

    def delete_by_id(self, session_id: str) -> int:
        """Compare-and-delete: returns 0 when another request already removed the row."""
        return (
            self._session.query(Session)
            .filter(Session.id == session_id)
            .delete(synchronize_session=False)
        )

    def delete_by_token(self, refresh_token: str) -> int:
        return (
            self._session.query(Session)
            .filter(Session.refresh_token == refresh_token)
            .delete(synchronize_session=False)
        )

    def delete_all_by_user(self, user_id: str) -> int:
        return (
            self._session.query(Session)
            .filter(Session.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def count_for_user(self, user_id: str) -> int:
        return self._session.query(Session).filter(Session.user_id == user_id).count()

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        return (
            self._session.query(Session)
            .filter(Session.expires_at < now)
            .delete(synchronize_session=False)
        )
