"""
Borrower Data Model Module

Borrower, Payment and Penalty records with their document encoding, plus the
normalization functions that turn raw caller input into typed records. All
monetary values are held as Decimal and stored as JSON numbers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError


DEFAULT_PENALTY_REASON = "Penalty"
PENALTY_TYPE = "penalty"

# Largest accepted magnitude for any numeric input
MAX_AMOUNT = Decimal('1e15')

# Whole numbers outside the BSON int64 range are stored as floats
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


class InterestType(Enum):
    """How the stated interest rate maps onto a loan period"""
    MONTHLY = "monthly"      # Rate applies per period as-is
    ANNUALLY = "annually"    # Annual rate, divided by 12 per period


class HistoryKind(Enum):
    """Append-only history lists on a borrower"""
    PAYMENTS = "payments"
    PENALTIES = "penalties"


# Python attribute name -> persisted document field name
DOCUMENT_FIELDS = {
    "id": "id",
    "name": "name",
    "contact": "contact",
    "address": "address",
    "loan_amount": "loanAmount",
    "term": "term",
    "interest_rate": "interestRate",
    "interest_type": "interestType",
    "next_due_date": "nextDueDate",
    "monthly_payment": "monthlyPayment",
    "created_at": "createdAt",
    "payments": "payments",
    "penalties": "penalties",
    "total_penalties": "totalPenalties",
    "remaining_balance": "remainingBalance",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def encode_value(value: Any, native_datetimes: bool = False) -> Any:
    """Convert a model value into its document representation"""
    if isinstance(value, Decimal):
        if value == value.to_integral_value() and INT64_MIN <= value <= INT64_MAX:
            return int(value)
        return float(value)
    if isinstance(value, datetime):
        return value if native_datetimes else value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def encode_fields(fields: Dict[str, Any], native_datetimes: bool = False) -> Dict[str, Any]:
    """Map attribute-named fields onto document field names and encode values"""
    encoded = {}
    for key, value in fields.items():
        if key not in DOCUMENT_FIELDS:
            raise KeyError(f"Unknown borrower field: {key}")
        encoded[DOCUMENT_FIELDS[key]] = encode_value(value, native_datetimes)
    return encoded


def decode_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal('0')
    return Decimal(str(value))


def decode_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    # BSON dates come back naive UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class Payment:
    """A payment applied to a borrower's balance"""
    amount: Decimal
    date: datetime = field(default_factory=utc_now)
    note: str = ""

    def to_document(self, native_datetimes: bool = False) -> Dict[str, Any]:
        return {
            "amount": encode_value(self.amount),
            "date": encode_value(self.date, native_datetimes),
            "note": self.note,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> 'Payment':
        return cls(
            amount=decode_decimal(data.get("amount")),
            date=decode_datetime(data.get("date")) or utc_now(),
            note=data.get("note") or "",
        )


@dataclass
class Penalty:
    """A penalty (or credit, when negative) added to a borrower's balance"""
    amount: Decimal
    reason: str = DEFAULT_PENALTY_REASON
    date: datetime = field(default_factory=utc_now)
    type: str = PENALTY_TYPE

    def to_document(self, native_datetimes: bool = False) -> Dict[str, Any]:
        return {
            "amount": encode_value(self.amount),
            "reason": self.reason,
            "date": encode_value(self.date, native_datetimes),
            "type": self.type,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> 'Penalty':
        return cls(
            amount=decode_decimal(data.get("amount")),
            reason=data.get("reason") or DEFAULT_PENALTY_REASON,
            date=decode_datetime(data.get("date")) or utc_now(),
            type=data.get("type") or PENALTY_TYPE,
        )


@dataclass
class Borrower:
    """
    A loan account and its full payment/penalty history.

    total_penalties and remaining_balance are caches derived from the terms
    and history; see balance.recalculate.
    """
    name: str
    contact: str
    address: str
    loan_amount: Decimal = Decimal('0')
    term: int = 0
    interest_rate: Decimal = Decimal('0')
    interest_type: InterestType = InterestType.MONTHLY
    next_due_date: Optional[datetime] = None
    monthly_payment: Decimal = Decimal('0')
    created_at: datetime = field(default_factory=utc_now)
    payments: List[Payment] = field(default_factory=list)
    penalties: List[Penalty] = field(default_factory=list)
    total_penalties: Decimal = Decimal('0')
    remaining_balance: Decimal = Decimal('0')
    id: Optional[str] = None

    @property
    def total_payments(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal('0'))

    def to_document(self, include_id: bool = True, native_datetimes: bool = False) -> Dict[str, Any]:
        """Convert to the camelCase document shared by every backend"""
        document = {}
        if include_id:
            document["id"] = self.id
        document.update({
            "name": self.name,
            "contact": self.contact,
            "address": self.address,
            "loanAmount": encode_value(self.loan_amount),
            "term": self.term,
            "interestRate": encode_value(self.interest_rate),
            "interestType": self.interest_type.value,
            "nextDueDate": encode_value(self.next_due_date, native_datetimes),
            "monthlyPayment": encode_value(self.monthly_payment),
            "createdAt": encode_value(self.created_at, native_datetimes),
            "payments": [p.to_document(native_datetimes) for p in self.payments],
            "penalties": [p.to_document(native_datetimes) for p in self.penalties],
            "totalPenalties": encode_value(self.total_penalties),
            "remainingBalance": encode_value(self.remaining_balance),
        })
        return document

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> 'Borrower':
        """Create instance from a stored document"""
        interest_type = data.get("interestType") or InterestType.MONTHLY.value
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            name=data.get("name", ""),
            contact=data.get("contact", ""),
            address=data.get("address", ""),
            loan_amount=decode_decimal(data.get("loanAmount")),
            term=int(data.get("term") or 0),
            interest_rate=decode_decimal(data.get("interestRate")),
            interest_type=InterestType(interest_type),
            next_due_date=decode_datetime(data.get("nextDueDate")),
            monthly_payment=decode_decimal(data.get("monthlyPayment")),
            created_at=decode_datetime(data.get("createdAt")) or utc_now(),
            payments=[Payment.from_document(p) for p in data.get("payments") or []],
            penalties=[Penalty.from_document(p) for p in data.get("penalties") or []],
            total_penalties=decode_decimal(data.get("totalPenalties")),
            remaining_balance=decode_decimal(data.get("remainingBalance")),
        )


# Input normalization: the only place caller input gets defaults applied

def _parse_decimal(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal('0')
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number.")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number.")
    if not number.is_finite():
        raise ValidationError(f"{field_name} must be a finite number.")
    if abs(number) >= MAX_AMOUNT:
        raise ValidationError(f"{field_name} is out of range.")
    return number


def _parse_term(value: Any) -> int:
    term = _parse_decimal(value, "term")
    if term != term.to_integral_value():
        raise ValidationError("term must be a whole number of periods.")
    return int(term)


def _parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return decode_datetime(value)
    try:
        return decode_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO-8601 date.")


def _parse_interest_type(value: Any) -> InterestType:
    if value is None or value == "":
        return InterestType.MONTHLY
    if isinstance(value, InterestType):
        return value
    try:
        return InterestType(str(value).lower())
    except ValueError:
        raise ValidationError("interestType must be 'monthly' or 'annually'.")


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def normalize_borrower_input(fields: Dict[str, Any]) -> Borrower:
    """
    Build a new Borrower from caller fields (camelCase keys).

    Requires non-empty name, contact and address. Numeric fields default to
    zero and interestType to monthly. Balances are left at zero for the
    caller to compute.
    """
    name = _text(fields.get("name"))
    contact = _text(fields.get("contact"))
    address = _text(fields.get("address"))
    if not name or not contact or not address:
        raise ValidationError("Missing required borrower fields.")

    return Borrower(
        name=name,
        contact=contact,
        address=address,
        loan_amount=_parse_decimal(fields.get("loanAmount"), "loanAmount"),
        term=_parse_term(fields.get("term")),
        interest_rate=_parse_decimal(fields.get("interestRate"), "interestRate"),
        interest_type=_parse_interest_type(fields.get("interestType")),
        next_due_date=_parse_datetime(fields.get("nextDueDate"), "nextDueDate"),
        monthly_payment=_parse_decimal(fields.get("monthlyPayment"), "monthlyPayment"),
    )


def normalize_payment_input(data: Dict[str, Any]) -> Payment:
    """Build a Payment; amount must be greater than zero"""
    amount = _parse_decimal(data.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")
    return Payment(
        amount=amount,
        date=_parse_datetime(data.get("date"), "date") or utc_now(),
        note=_text(data.get("note")),
    )


def normalize_penalty_input(data: Dict[str, Any]) -> Penalty:
    """Build a Penalty; any amount is accepted and the date is always now"""
    return Penalty(
        amount=_parse_decimal(data.get("amount"), "amount"),
        reason=_text(data.get("reason")) or DEFAULT_PENALTY_REASON,
        date=utc_now(),
    )
