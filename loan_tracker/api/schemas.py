"""
Pydantic schemas for API requests
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Number = Union[float, str]
Text = Union[str, int, float]


class CreateBorrowerRequest(BaseModel):
    """Borrower fields; required-field checks happen in the loan service"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[Text] = None
    contact: Optional[Text] = None
    address: Optional[Text] = None
    loan_amount: Optional[Number] = Field(None, alias="loanAmount")
    term: Optional[Number] = None
    interest_rate: Optional[Number] = Field(None, alias="interestRate", description="Percent per period")
    interest_type: Optional[str] = Field(None, alias="interestType", description="monthly or annually")
    next_due_date: Optional[str] = Field(None, alias="nextDueDate")  # ISO date string
    monthly_payment: Optional[Number] = Field(None, alias="monthlyPayment")


class PaymentModel(BaseModel):
    amount: Optional[Number] = None
    date: Optional[str] = None  # ISO date string, defaults to now
    note: Optional[str] = None


class PenaltyModel(BaseModel):
    amount: Optional[Number] = None
    reason: Optional[str] = None


class MutationRequest(BaseModel):
    """Exactly one of payment or penalty is expected"""
    payment: Optional[PaymentModel] = None
    penalty: Optional[PenaltyModel] = None
