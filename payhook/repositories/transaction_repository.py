from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from payhook.dto.webhook import NormalizedTransaction
from payhook.models.transaction import Transaction
from payhook.utils.enums import TransactionStatus


class TransactionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        if self.db.get_bind().dialect.name == "sqlite":
            return sqlite_insert(Transaction)
        return pg_insert(Transaction)

    async def create_if_not_exists(self, record: NormalizedTransaction) -> str | None:
        # Use INSERT ... ON CONFLICT DO NOTHING so repeated deliveries store one row.
        insert_stmt = (
            self._insert()
            .values(
                reference=record.reference,
                type=record.type.value,
                status=record.status,
                event=record.event,
                order_id=record.order_id,
                email=record.email,
                customer_name=record.customer_name,
                phone=record.phone,
                amount=record.amount,
                currency=record.currency,
                details=record.details,
                payload_hash=record.payload_hash,
                received_at=record.received_at,
            )
            .on_conflict_do_nothing(index_elements=["reference"])
            .returning(Transaction.reference)
        )
        inserted_reference = (await self.db.execute(insert_stmt)).scalar_one_or_none()
        if inserted_reference is None:
            return None
        await self.db.commit()
        return inserted_reference

    async def get_by_reference(self, reference: str) -> Transaction | None:
        return (await self.db.execute(
            select(Transaction).where(Transaction.reference == reference)
        )).scalar_one_or_none()

    async def list_transactions(
        self,
        *,
        provider: str | None = None,
        status: TransactionStatus | None = None,
        search: str | None = None,
        limit: int = 100,
    ) -> list[Transaction]:
        stmt = select(Transaction)
        if provider:
            stmt = stmt.where(Transaction.type == provider)
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        if search:
            stmt = stmt.where(Transaction.reference.contains(search, autoescape=True))
        stmt = stmt.order_by(Transaction.received_at.desc(), Transaction.id.desc()).limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())
