from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional, List, Literal

from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator
from pydantic.networks import validate_email

EntryType = Literal["income", "expense"]
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ===== AUTH =====
class RegisterIn(BaseModel):
    username: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginIn(BaseModel):
    # plain string: a malformed address must fail like an unknown one
    email: NonEmptyStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        # same normalization EmailStr applied at registration
        try:
            return validate_email(v)[1]
        except ValueError:
            return v


class UserOut(BaseModel):
    id: int
    username: str
    email: str

    class Config:
        from_attributes = True


class RegisterOut(BaseModel):
    message: str
    userId: int


class LoginOut(BaseModel):
    message: str
    token: str
    user: UserOut


class MessageOut(BaseModel):
    message: str


# ===== CATEGORIES =====
class CategoryIn(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    type: EntryType


class CategoryOut(BaseModel):
    id: int
    user_id: int
    name: str
    type: str

    class Config:
        from_attributes = True


class CategoryCreated(BaseModel):
    message: str
    categoryId: int


# ===== TRANSACTIONS =====
class TransactionIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    type: EntryType
    transaction_date: date
    description: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = None


class TransactionOut(BaseModel):
    id: int
    user_id: int
    amount: float
    type: str
    description: Optional[str] = None
    transaction_date: date
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    created_at: datetime


class TransactionCreated(BaseModel):
    message: str
    transactionId: int


# ===== DASHBOARD =====
class SummaryOut(BaseModel):
    totalIncome: float
    totalExpense: float
    netBalance: float


class MonthTotal(BaseModel):
    month: str
    total_amount: float


class MonthlyTrendsOut(BaseModel):
    incomeTrends: List[MonthTotal]
    expenseTrends: List[MonthTotal]


class CategorySpending(BaseModel):
    category_name: str
    total_spent: float
