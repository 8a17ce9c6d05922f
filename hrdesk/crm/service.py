"""CRM service layer: client creation with derived contract end date."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.common.audit import create_audit_entry
from hrdesk.common.calendar import contract_end_date
from hrdesk.common.constants import ENTITY_CLIENT
from hrdesk.common.exceptions import NotFoundException
from hrdesk.crm.models import Client
from hrdesk.crm.schemas import ClientCreate, ClientOut

logger = logging.getLogger(__name__)


class ClientService:
    """Async client operations."""

    @staticmethod
    async def create_client(
        db: AsyncSession,
        data: ClientCreate,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ClientOut:
        """Create a client; the contract end date is start + duration months."""
        client = Client(
            name=data.name,
            status=data.status,
            contract_start_date=data.contract_start_date,
            contract_duration_months=data.contract_duration_months,
            contract_end_date=contract_end_date(
                data.contract_start_date, data.contract_duration_months,
            ),
        )
        db.add(client)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type=ENTITY_CLIENT,
            entity_id=client.id,
            actor_id=actor_id,
            new_values={
                "name": client.name,
                "contract_end_date": (
                    client.contract_end_date.isoformat() if client.contract_end_date else None
                ),
            },
        )
        logger.info("Client %s created (%s)", client.id, client.name)
        return ClientOut.model_validate(client)

    @staticmethod
    async def get_client(db: AsyncSession, client_id: uuid.UUID) -> ClientOut:
        client = await db.get(Client, client_id)
        if client is None:
            raise NotFoundException("Client", str(client_id))
        return ClientOut.model_validate(client)
