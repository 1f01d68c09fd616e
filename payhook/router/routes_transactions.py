import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payhook.dto.transaction import TransactionListOut, TransactionOut
from payhook.services.transaction_service import TransactionService
from payhook.utils.config import settings
from payhook.utils.db import get_db
from payhook.utils.enums import ProviderTag, TransactionStatus

router = APIRouter(prefix="/v1/transactions", tags=["transactions"])
logger = logging.getLogger(__name__)


def get_service(db: AsyncSession = Depends(get_db)) -> TransactionService:
    return TransactionService(db)


@router.get("", response_model=TransactionListOut, status_code=status.HTTP_200_OK)
async def list_transactions(
    provider: ProviderTag | None = Query(default=None, alias="type"),
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=160),
    limit: int = Query(default=100, ge=1, le=500),
    service: TransactionService = Depends(get_service),
) -> TransactionListOut:
    try:
        return await asyncio.wait_for(
            service.list_transactions(
                provider=provider.value if provider else None,
                status=status_filter,
                search=search,
                limit=limit,
            ),
            timeout=settings.db_operation_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.exception("Transaction listing timed out")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database operation timed out") from exc
    except SQLAlchemyError as exc:
        logger.exception("Transaction listing DB error")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable") from exc


@router.get("/{reference}", response_model=TransactionOut, status_code=status.HTTP_200_OK)
async def get_transaction(reference: str, service: TransactionService = Depends(get_service)) -> TransactionOut:
    try:
        transaction = await asyncio.wait_for(
            service.get_transaction(reference),
            timeout=settings.db_operation_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.exception("Transaction lookup timed out. reference=%s", reference)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database operation timed out") from exc
    except SQLAlchemyError as exc:
        logger.exception("Transaction lookup DB error. reference=%s", reference)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable") from exc
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction
