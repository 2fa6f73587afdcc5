"""Ledger: validation, persistence and date-scoped queries for expenses."""
import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, List, Union
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from models.expense import Expense, ExpenseIn, RecordResult, parse_iso_date
from models.tables import ExpenseRow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('payee', 'amount', 'date')

FIELD_REASONS = {
    'payee': "must be a non-empty string",
    'amount': "must be a number",
    'date': "must be an ISO-8601 date (YYYY-MM-DD)",
}

class LedgerStoreError(ConnectionError):
    """The store failed to complete a read or write."""

class InvalidDateError(ValueError):
    """A query date that is not a valid YYYY-MM-DD string."""

def parse_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise InvalidDateError(f"Invalid date '{value}': expected YYYY-MM-DD") from None

def validate_expense(expense: Any) -> Union[ExpenseIn, str]:
    """
    Returns the validated ExpenseIn, or the error message for the first
    problem found in `expense`.

    Every required field is checked for presence (absent or null), in the
    order payee, amount, date; then the values are checked against ExpenseIn.
    """
    if not isinstance(expense, Mapping):
        return "Invalid expense: expected an object"

    for field in REQUIRED_FIELDS:
        if expense.get(field) is None:
            return f"Invalid expense: `{field}` is required"

    try:
        return ExpenseIn.model_validate(dict(expense))
    except ValidationError as e:
        field = e.errors()[0]["loc"][0]
        return f"Invalid expense: `{field}` {FIELD_REASONS.get(field, 'is invalid')}"

class Ledger:
    """Records expenses and retrieves them by date."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)

    def record(self, expense: Mapping) -> RecordResult:
        """
        Validates and stores one expense. Validation failures come back as a
        failed RecordResult; only store faults are raised.
        """
        data = validate_expense(expense)
        if isinstance(data, str):
            logger.warning(f"Rejected expense: {data}")
            return RecordResult.fail(data)

        row = ExpenseRow(payee=data.payee, amount=data.amount, date=data.date)
        try:
            with self.Session.begin() as session:
                session.add(row)
                # The insert itself reports the generated key.
                session.flush()
                expense_id = row.id
        except SQLAlchemyError as e:
            logger.error(f"Database error recording expense: {e}")
            raise LedgerStoreError(f"Database error recording expense: {e}") from e

        logger.info(f"Recorded expense {expense_id}: {data.payee} {data.amount} on {data.date.isoformat()}")
        return RecordResult.ok(expense_id)

    def expenses_on(self, day: Union[date, str]) -> List[Expense]:
        """Every stored expense dated `day`, in insertion order."""
        query_date = parse_date(day)
        statement = select(ExpenseRow).where(ExpenseRow.date == query_date).order_by(ExpenseRow.id)
        try:
            with self.Session() as session:
                rows = session.scalars(statement).all()
                expenses = [Expense.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching expenses for {query_date}: {e}")
            raise LedgerStoreError(f"Database error fetching expenses: {e}") from e

        logger.debug(f"Fetched {len(expenses)} expenses for {query_date.isoformat()}.")
        return expenses
