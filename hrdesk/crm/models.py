"""CRM ORM models: Client (owner of automation rules)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrdesk.common.constants import ClientStatus
from hrdesk.database import Base


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    status: Mapped[ClientStatus] = mapped_column(
        sa.Enum(ClientStatus, name="client_status"),
        nullable=False,
        default=ClientStatus.active,
    )
    contract_start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    contract_duration_months: Mapped[Optional[int]] = mapped_column(sa.Integer)
    contract_end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Client {self.name!r}>"
