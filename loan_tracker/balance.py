"""
Balance Calculator Module

Simple (non-compounding) interest over a loan's fixed term and the remaining
balance derived from it, shared by every storage backend.
"""

from decimal import Decimal
from typing import Iterable, Union

from .models import Borrower, InterestType, Payment, Penalty


MONTHS_PER_YEAR = Decimal('12')
PERCENT = Decimal('100')
ZERO = Decimal('0')


def compute_total_interest(
    loan_amount: Decimal,
    interest_rate: Decimal,
    term: int,
    interest_type: InterestType
) -> Decimal:
    """
    Total simple interest accrued over the loan term.

    Empty or invalid loans (non-positive amount or term) accrue nothing, so
    the loan amount passes through to the balance unchanged.

    Args:
        loan_amount: Principal
        interest_rate: Rate in percent (12 means 12%)
        term: Number of periods
        interest_type: MONTHLY uses the rate per period as-is, ANNUALLY
            spreads it over 12 periods

    Returns:
        Total interest for the whole term
    """
    if loan_amount <= ZERO or term <= 0:
        return ZERO

    if interest_type == InterestType.ANNUALLY:
        period_rate = interest_rate / MONTHS_PER_YEAR
    else:
        period_rate = interest_rate

    period_interest = loan_amount * (period_rate / PERCENT)
    return period_interest * term


def compute_remaining_balance(
    loan_amount: Decimal,
    total_interest: Decimal,
    total_penalties: Decimal,
    total_payments: Decimal,
    floor: bool = False
) -> Decimal:
    """
    Principal plus interest and penalties, less payments.

    Payments floor the result at zero; penalties do not, so a penalty can
    lift an overpaid balance back above zero.
    """
    balance = loan_amount + total_interest + total_penalties - total_payments
    if floor and balance < ZERO:
        return ZERO
    return balance


def sum_amounts(records: Iterable[Union[Payment, Penalty]]) -> Decimal:
    return sum((record.amount for record in records), ZERO)


def initial_balance(borrower: Borrower) -> Decimal:
    """Balance of a freshly created loan (no payments or penalties)"""
    total_interest = compute_total_interest(
        borrower.loan_amount, borrower.interest_rate,
        borrower.term, borrower.interest_type
    )
    return compute_remaining_balance(borrower.loan_amount, total_interest, ZERO, ZERO)


def recalculate(borrower: Borrower, floor: bool = False) -> Decimal:
    """Recompute the remaining balance from the borrower's own terms and history"""
    total_interest = compute_total_interest(
        borrower.loan_amount, borrower.interest_rate,
        borrower.term, borrower.interest_type
    )
    return compute_remaining_balance(
        borrower.loan_amount,
        total_interest,
        sum_amounts(borrower.penalties),
        sum_amounts(borrower.payments),
        floor=floor
    )
