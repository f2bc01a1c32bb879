from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Credential(BaseModel, Base):
    """Login identity for a Profile. password_hash is NULL for social-only accounts."""
    __tablename__ = "auth"

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    provider = Column(String(32), nullable=False, default="email")
    provider_id = Column(String(255), nullable=True)

    profile = relationship("Profile", back_populates="credential")

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
