"""PostgreSQL implementation of PurchaseRepo."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError
from app.db.tables import CoursePurchaseRow
from app.models.purchase import Purchase

logger = logging.getLogger(__name__)


class PgPurchaseRepo:
    """Satisfies the PurchaseRepo Protocol using PostgreSQL.

    Uniqueness lives in the table (uq_course_purchases_user_course and
    uq_course_purchases_payment).  The insert runs inside a SAVEPOINT so a
    violation rolls back only that statement and the request's session
    stays usable for the error response.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(self, user_id: str, course_id: str) -> bool:
        stmt = select(
            exists().where(
                CoursePurchaseRow.user_id == user_id,
                CoursePurchaseRow.course_id == course_id,
            )
        )
        return bool((await self._session.execute(stmt)).scalar())

    async def create(
        self, user_id: str, course_id: str, order_id: str, payment_id: str
    ) -> Purchase:
        purchase = Purchase.new(
            user_id=user_id,
            course_id=course_id,
            order_id=order_id,
            payment_id=payment_id,
            created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        row = CoursePurchaseRow(
            id=purchase.id,
            user_id=purchase.user_id,
            course_id=purchase.course_id,
            order_id=purchase.order_id,
            payment_id=purchase.payment_id,
            created_at=purchase.created_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as e:
            logger.warning(
                "Purchase insert hit unique constraint user=%s course=%s payment=%s",
                user_id,
                course_id,
                payment_id,
            )
            raise ConflictError("You already purchased this course") from e
        return purchase

    async def list_for_user(self, user_id: str) -> list[Purchase]:
        stmt = (
            select(CoursePurchaseRow)
            .where(CoursePurchaseRow.user_id == user_id)
            .order_by(CoursePurchaseRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_purchase(r) for r in rows]

    async def get_by_payment_id(self, payment_id: str) -> Purchase | None:
        stmt = select(CoursePurchaseRow).where(
            CoursePurchaseRow.payment_id == payment_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_purchase(row)


def _row_to_purchase(row: CoursePurchaseRow) -> Purchase:
    return Purchase(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        order_id=row.order_id,
        payment_id=row.payment_id,
        created_at=row.created_at,
    )
