from __future__ import annotations

from typing import Optional

from models.credential import Credential
from models.db_storage import DBStorage
from models.user import Profile


class CredentialStore:
    """Lookups and the atomic Profile + Credential insert used by sign-up."""

    def __init__(self, storage: DBStorage):
        self.storage = storage

    @property
    def _session(self):
        return self.storage.get_session()

    def find_by_email(self, email: str) -> Optional[Credential]:
        return self._session.query(Credential).filter(Credential.email == email).first()

    def find_by_nickname(self, nickname: str) -> Optional[Profile]:
        return self._session.query(Profile).filter(Profile.nickname == nickname).first()

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.storage.get(Profile, user_id)

    def create_both(self, profile: Profile, credential: Credential) -> tuple[Profile, Credential]:
        """Insert both rows in one transaction; neither survives if either insert fails."""
        credential.user_id = profile.id
        with self.storage.transaction():
            self.storage.new(profile)
            # Profile first: Credential references it
            self._session.flush()
            self.storage.new(credential)
        return profile, credential
