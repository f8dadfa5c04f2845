import math

from sqlalchemy import case, func, or_, select

from ..models import Direction, Transaction, TransactionStatus
from .matching import PageRequest, Pagination


class TransactionHistory:
    def __init__(self, db):
        self.db = db

    def get_user_history(self, user_id, page=None, status=None, direction=None):
        page = page or PageRequest(limit=20)
        conditions = [or_(Transaction.payer_id == user_id, Transaction.payee_id == user_id)]
        if status is not None:
            conditions.append(Transaction.status == TransactionStatus(status))
        if direction is not None:
            conditions.append(Transaction.direction == Direction(direction))

        total = self.db.execute(
            select(func.count()).select_from(Transaction).where(*conditions)
        ).scalar_one()
        transactions = self.db.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc())
            .offset(page.offset)
            .limit(page.limit)
        ).scalars().all()
        return transactions, Pagination(
            page=page.page,
            limit=page.limit,
            total=total,
            total_pages=math.ceil(total / page.limit) if total else 0,
        )

    def get_user_stats(self, user_id):
        """Totals over the user's COMPLETED transactions."""
        row = self.db.execute(
            select(
                func.count(Transaction.id),
                func.coalesce(func.sum(case((Transaction.payer_id == user_id, Transaction.amount), else_=0)), 0),
                func.coalesce(func.sum(case((Transaction.payee_id == user_id, Transaction.net_amount), else_=0)), 0),
                func.coalesce(func.sum(case((Transaction.payer_id == user_id, Transaction.platform_fee), else_=0)), 0),
            ).where(
                or_(Transaction.payer_id == user_id, Transaction.payee_id == user_id),
                Transaction.status == TransactionStatus.COMPLETED,
            )
        ).one()
        return {
            "total_transactions": int(row[0]),
            "total_amount_paid": int(row[1]),
            "total_amount_received": int(row[2]),
            "total_fees_paid": int(row[3]),
        }
