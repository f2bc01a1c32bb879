"""
Session model: one row per logged-in device, backing exactly one live refresh token.
Fields:
- refresh_token (unique) - the token value itself, looked up on refresh/logout
- user_id (String(36)) - FK to users.id
- expires_at (naive UTC)
- user_agent, client_ip - request metadata captured at sign-in / rotation
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey

from models.base_model import BaseModel, Base


class Session(BaseModel, Base):
    __tablename__ = "sessions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token = Column(Text, nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    user_agent = Column(String(512), nullable=True)
    client_ip = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<Session id={self.id} user={self.user_id}>"
