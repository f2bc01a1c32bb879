from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship


class Profile(BaseModel, Base):
    """Public profile of a user; its id is the user id everywhere else."""
    __tablename__ = "users"
    nickname = Column(String(64), nullable=False, unique=True, index=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(512), nullable=True)

    credential = relationship(
        "Credential",
        back_populates="profile",
        uselist=False,
        passive_deletes=True
    )
