from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, extract, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import Conflict, InvalidReference, NotFound
from models import Category, Transaction

logger = logging.getLogger(__name__)

DUPLICATE_CATEGORY = "Category with this name and type already exists for this user."


# ---------- Ownership guard ----------
def _owned(db: Session, model, user_id: int):
    """Base query for ``model`` restricted to rows owned by ``user_id``.

    Every read and write below starts here.
    """
    return db.query(model).filter(model.user_id == user_id)


def _get_owned(db: Session, model, obj_id: int, user_id: int, not_found: str):
    # locks the row for the rest of the transaction on backends that support it
    obj = _owned(db, model, user_id).filter(model.id == obj_id).with_for_update().first()
    if obj is None:
        raise NotFound(not_found)
    return obj


def _check_category_ref(db: Session, category_id: Optional[int], user_id: int) -> Optional[int]:
    if not category_id:
        return None
    found = _owned(db, Category, user_id).filter(Category.id == category_id).with_for_update().first()
    if found is None:
        raise InvalidReference()
    return found.id


def _commit(db: Session, conflict_message: Optional[str] = None):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if conflict_message is None:
            raise
        logger.info("Write rejected: %s", conflict_message)
        raise Conflict(conflict_message)


# ---------- Categories ----------
def list_categories(db: Session, user_id: int) -> List[Category]:
    return _owned(db, Category, user_id).order_by(Category.id).all()


def create_category(db: Session, user_id: int, name: str, type_: str) -> Category:
    category = Category(user_id=user_id, name=name, type=type_)
    db.add(category)
    _commit(db, DUPLICATE_CATEGORY)
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, user_id: int, name: str, type_: str) -> None:
    not_found = "Category not found or you do not have permission to update it."
    _get_owned(db, Category, category_id, user_id, not_found)

    duplicate = "Another category with this name and type already exists for this user."
    try:
        # bulk UPDATE runs immediately, so the unique constraint fires here
        updated = (
            _owned(db, Category, user_id)
            .filter(Category.id == category_id)
            .update({Category.name: name, Category.type: type_}, synchronize_session=False)
        )
    except IntegrityError:
        db.rollback()
        logger.info("Write rejected: %s", duplicate)
        raise Conflict(duplicate)
    if updated == 0:
        db.rollback()
        raise NotFound("Category not found or no changes made.")
    _commit(db, duplicate)


def delete_category(db: Session, category_id: int, user_id: int) -> None:
    not_found = "Category not found or you do not have permission to delete it."
    _get_owned(db, Category, category_id, user_id, not_found)

    # referencing transactions become uncategorized, never deleted
    _owned(db, Transaction, user_id).filter(Transaction.category_id == category_id).update(
        {Transaction.category_id: None}, synchronize_session=False
    )
    deleted = _owned(db, Category, user_id).filter(Category.id == category_id).delete(synchronize_session=False)
    if deleted == 0:
        db.rollback()
        raise NotFound(not_found)
    _commit(db)


# ---------- Transactions ----------
def _transactions_with_category(db: Session, user_id: int):
    return (
        _owned(db, Transaction, user_id)
        .outerjoin(Category, Transaction.category_id == Category.id)
        .add_columns(Category.name.label("category_name"))
        .order_by(desc(Transaction.transaction_date), desc(Transaction.created_at), desc(Transaction.id))
    )


def _transaction_rows(rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": t.id,
            "user_id": t.user_id,
            "amount": t.amount,
            "type": t.type,
            "description": t.description,
            "transaction_date": t.transaction_date,
            "category_id": t.category_id,
            "category_name": category_name,
            "created_at": t.created_at,
        }
        for t, category_name in rows
    ]


def list_transactions(db: Session, user_id: int) -> List[Dict[str, Any]]:
    return _transaction_rows(_transactions_with_category(db, user_id).all())


def create_transaction(
    db: Session,
    user_id: int,
    amount: Decimal,
    type_: str,
    transaction_date,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
) -> Transaction:
    tx = Transaction(
        user_id=user_id,
        amount=amount,
        type=type_,
        description=description,
        transaction_date=transaction_date,
        category_id=_check_category_ref(db, category_id, user_id),
    )
    db.add(tx)
    _commit(db)
    db.refresh(tx)
    return tx


def update_transaction(
    db: Session,
    tx_id: int,
    user_id: int,
    amount: Decimal,
    type_: str,
    transaction_date,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
) -> None:
    not_found = "Transaction not found or you do not have permission to update it."
    _get_owned(db, Transaction, tx_id, user_id, not_found)
    ref = _check_category_ref(db, category_id, user_id)

    updated = (
        _owned(db, Transaction, user_id)
        .filter(Transaction.id == tx_id)
        .update(
            {
                Transaction.amount: amount,
                Transaction.type: type_,
                Transaction.description: description,
                Transaction.transaction_date: transaction_date,
                Transaction.category_id: ref,
            },
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        raise NotFound(not_found)
    _commit(db)


def delete_transaction(db: Session, tx_id: int, user_id: int) -> None:
    deleted = _owned(db, Transaction, user_id).filter(Transaction.id == tx_id).delete(synchronize_session=False)
    if deleted == 0:
        db.rollback()
        raise NotFound("Transaction not found or you do not have permission to delete it.")
    _commit(db)


def transactions_for_period(
    db: Session, user_id: int, year: Optional[int] = None, month: Optional[int] = None
) -> List[Dict[str, Any]]:
    query = _transactions_with_category(db, user_id)
    if year is not None:
        query = query.filter(extract("year", Transaction.transaction_date) == year)
    if month is not None:
        query = query.filter(extract("month", Transaction.transaction_date) == month)
    return _transaction_rows(query.all())


# ---------- Dashboard ----------
def summary(db: Session, user_id: int) -> Dict[str, float]:
    rows = (
        db.query(Transaction.type, func.sum(Transaction.amount))
        .filter(Transaction.user_id == user_id)
        .group_by(Transaction.type)
        .all()
    )
    totals = {t: Decimal(str(s or 0)) for t, s in rows}
    total_income = totals.get("income", Decimal("0"))
    total_expense = totals.get("expense", Decimal("0"))
    return {
        "totalIncome": float(total_income),
        "totalExpense": float(total_expense),
        "netBalance": float(total_income - total_expense),
    }


def monthly_trends(db: Session, user_id: int) -> Dict[str, List[Dict[str, Any]]]:
    year = extract("year", Transaction.transaction_date)
    month = extract("month", Transaction.transaction_date)
    rows = (
        db.query(Transaction.type, year.label("y"), month.label("m"), func.sum(Transaction.amount).label("total"))
        .filter(Transaction.user_id == user_id)
        .group_by(Transaction.type, year, month)
        .order_by(year, month)
        .all()
    )

    trends: Dict[str, List[Dict[str, Any]]] = {"incomeTrends": [], "expenseTrends": []}
    for type_, y, m, total in rows:
        key = "incomeTrends" if type_ == "income" else "expenseTrends"
        trends[key].append({"month": f"{int(y):04d}-{int(m):02d}", "total_amount": float(total or 0)})
    return trends


def category_spending(db: Session, user_id: int) -> List[Dict[str, Any]]:
    total = func.sum(Transaction.amount)
    rows = (
        db.query(Category.name, total.label("total_spent"))
        .select_from(Transaction)
        .join(Category, Transaction.category_id == Category.id)
        .filter(Transaction.user_id == user_id, Category.user_id == user_id, Transaction.type == "expense")
        .group_by(Category.name)
        .order_by(desc(total))
        .all()
    )
    return [{"category_name": name, "total_spent": float(spent or 0)} for name, spent in rows]
