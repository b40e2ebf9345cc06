"""
Directory Infrastructure Models
===============================

SQLAlchemy ORM models for the directory tables. The directory is owned by
the surrounding application; the engine only reads these tables.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from servicedesk.infrastructure.database import Base


class UserModel(Base):
    """Maps to the 'users' table."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="user", index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )


class TeamModel(Base):
    """Maps to the 'teams' table."""
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    leader_id: Mapped[Optional[str]] = mapped_column(String(64), ForeignKey("users.id"), nullable=True)


class TeamMemberModel(Base):
    """
    Maps to the 'team_members' table.

    ``position`` preserves insertion order, which is the "first member" order.
    """
    __tablename__ = "team_members"

    team_id: Mapped[str] = mapped_column(String(64), ForeignKey("teams.id"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
