from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from payhook.dto.transaction import TransactionListOut, TransactionOut, TransactionStats
from payhook.repositories.transaction_repository import TransactionRepository
from payhook.utils.enums import TransactionStatus


class TransactionService:
    def __init__(self, db: AsyncSession):
        self.repository = TransactionRepository(db)

    async def get_transaction(self, reference: str) -> TransactionOut | None:
        transaction = await self.repository.get_by_reference(reference)
        if transaction is None:
            return None
        return TransactionOut.model_validate(transaction)

    async def list_transactions(
        self,
        *,
        provider: str | None = None,
        status: TransactionStatus | None = None,
        search: str | None = None,
        limit: int = 100,
    ) -> TransactionListOut:
        rows = await self.repository.list_transactions(
            provider=provider, status=status, search=search, limit=limit
        )
        transactions = [TransactionOut.model_validate(txn) for txn in rows]
        return TransactionListOut(transactions=transactions, stats=summarize(transactions))


def summarize(transactions: list[TransactionOut]) -> TransactionStats:
    successful = [txn for txn in transactions if txn.status == TransactionStatus.SUCCESS]
    return TransactionStats(
        total_transactions=len(transactions),
        successful_transactions=len(successful),
        pending_transactions=sum(1 for txn in transactions if txn.status == TransactionStatus.PENDING),
        failed_transactions=sum(1 for txn in transactions if txn.status == TransactionStatus.FAILED),
        total_amount=sum((txn.amount or Decimal("0") for txn in successful), Decimal("0")),
    )
