"""Pydantic models for Expense data"""
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator, model_validator
from datetime import date, datetime
from typing import Optional, Union
import math
import re

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

def parse_iso_date(value: str) -> date:
    """Parses a strict YYYY-MM-DD string, raising ValueError otherwise."""
    if not ISO_DATE_PATTERN.match(value):
        raise ValueError(f"'{value}' is not in YYYY-MM-DD format")
    return datetime.strptime(value, '%Y-%m-%d').date()

class ExpenseIn(BaseModel):
    """
    Shape of an expense submitted by a caller. Any incoming `id` is ignored.
    """
    model_config = ConfigDict(extra="ignore")

    payee: str = Field(min_length=1)
    amount: Union[StrictInt, StrictFloat]
    date: date

    @field_validator('payee')
    @classmethod
    def payee_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("payee is blank")
        return value

    @field_validator('amount')
    @classmethod
    def amount_is_finite(cls, value) -> float:
        # Stored as REAL: must fit a finite float.
        try:
            amount = float(value)
        except OverflowError:
            raise ValueError("amount is out of range") from None
        if not math.isfinite(amount):
            raise ValueError("amount must be finite")
        return amount

    @field_validator('date', mode='before')
    @classmethod
    def date_from_iso_string(cls, value):
        # Only YYYY-MM-DD strings (or date objects); no timestamps.
        if isinstance(value, str):
            return parse_iso_date(value)
        if isinstance(value, date):
            return value
        raise ValueError("date must be a YYYY-MM-DD string")

class Expense(BaseModel):
    """
    A persisted expense, as returned to callers.
    """
    id: int
    payee: str
    amount: float
    date: date

    model_config = ConfigDict(from_attributes=True)

class RecordResult(BaseModel):
    """
    Outcome of a write attempt. Exactly one of `expense_id` / `error_message`
    is set, matching `success`.
    """
    success: bool
    expense_id: Optional[int] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def check_outcome(self) -> 'RecordResult':
        if self.success and (self.expense_id is None or self.error_message is not None):
            raise ValueError("successful result needs expense_id and no error_message")
        if not self.success and (self.error_message is None or self.expense_id is not None):
            raise ValueError("failed result needs error_message and no expense_id")
        return self

    @classmethod
    def ok(cls, expense_id: int) -> 'RecordResult':
        return cls(success=True, expense_id=expense_id)

    @classmethod
    def fail(cls, error_message: str) -> 'RecordResult':
        return cls(success=False, error_message=error_message)
