from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ticketing.models.database import Base


class User(Base):
    """Account owned by the auth subsystem; read here only to resolve the buyer."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
