"""CRM router: client creation and lookup (rule owners)."""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.dependencies import require_approver
from hrdesk.auth.models import User
from hrdesk.crm.schemas import ClientCreate, ClientOut
from hrdesk.crm.service import ClientService
from hrdesk.database import get_db

router = APIRouter(prefix="", tags=["clients"])


@router.post("", response_model=ClientOut, status_code=201)
async def create_client(
    body: ClientCreate,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await ClientService.create_client(db, body, actor_id=user.id)


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await ClientService.get_client(db, client_id)
