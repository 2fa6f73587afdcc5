"""SQLAlchemy table definitions"""
from sqlalchemy import Column, Date, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class ExpenseRow(Base):
    __tablename__ = "expenses"
    # Ids are never reused, even after rows disappear.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    payee = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False, index=True)
