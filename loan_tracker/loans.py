"""
Loan Service Module

Handles borrower creation, listing, payment and penalty application, and
deletion. Persistence goes through whichever backend the selector resolves;
the Balance Calculator keeps remainingBalance consistent after every change.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .balance import (
    compute_remaining_balance, compute_total_interest, initial_balance, recalculate, sum_amounts
)
from .errors import BackendUnavailableError, NotFoundError, PersistenceError, ValidationError
from .logging_config import get_logger, log_action
from .models import (
    Borrower, HistoryKind, normalize_borrower_input,
    normalize_payment_input, normalize_penalty_input
)
from .selector import BackendSelector
from .storage import StorageBackend


logger = get_logger("loan_tracker.loans")

T = TypeVar("T")


@dataclass
class MutationResult:
    """Outcome of a payment or penalty"""
    message: str
    remaining_balance: Decimal
    total_penalties: Optional[Decimal] = None


class LoanService:
    """
    Manages borrowers from creation through deletion
    """

    def __init__(self, selector: BackendSelector):
        self.selector = selector

    # Backend dispatch

    def _read(self, operation: Callable[[StorageBackend], T]) -> T:
        """Run a read; a database failure falls back to the file store"""
        backend = self.selector.resolve()
        try:
            return operation(backend)
        except BackendUnavailableError as e:
            if backend is self.selector.file_store:
                raise PersistenceError(str(e)) from e
            self.selector.fail_over(e)
            logger.warning(f"Read failed on {backend.name} backend, retrying on file storage")
            return operation(self.selector.file_store)

    def _write(self, operation: Callable[[StorageBackend], T]) -> T:
        """Run a write; a database failure surfaces after failing over"""
        backend = self.selector.resolve()
        try:
            return operation(backend)
        except BackendUnavailableError as e:
            self.selector.fail_over(e)
            raise PersistenceError(f"Write failed on {backend.name} backend: {e}") from e

    @staticmethod
    def _require_id(borrower_id: Optional[str]) -> str:
        if not borrower_id or not str(borrower_id).strip():
            raise ValidationError("Missing borrower id.")
        return str(borrower_id).strip()

    @staticmethod
    def _load(backend: StorageBackend, borrower_id: str) -> Borrower:
        borrower = backend.get_by_id(borrower_id)
        if borrower is None:
            raise NotFoundError("Borrower not found.")
        return borrower

    # Operations

    def create_borrower(self, fields: Dict[str, Any]) -> Borrower:
        """
        Create a borrower with a computed initial balance.

        Raises:
            ValidationError: name, contact or address missing, or a field
                cannot be parsed
        """
        borrower = normalize_borrower_input(fields)
        borrower.remaining_balance = initial_balance(borrower)

        def insert(backend: StorageBackend) -> Borrower:
            created = backend.insert(borrower)
            log_action(
                logger, "info", f"Created borrower {created.id}",
                action="create_borrower", resource=created.id, backend=backend.name
            )
            return created

        return self._write(insert)

    def list_borrowers(self) -> List[Borrower]:
        """All borrowers, newest first"""
        return self._read(lambda backend: backend.list_all())

    def get_borrower(self, borrower_id: Optional[str]) -> Borrower:
        borrower_id = self._require_id(borrower_id)
        return self._read(lambda backend: self._load(backend, borrower_id))

    def apply_payment(self, borrower_id: Optional[str], payment_data: Dict[str, Any]) -> MutationResult:
        """
        Append a payment and recompute the balance, floored at zero.

        Raises:
            ValidationError: missing id or amount not greater than zero
            NotFoundError: no borrower with this id
        """
        borrower_id = self._require_id(borrower_id)
        payment = normalize_payment_input(payment_data or {})

        def apply(backend: StorageBackend) -> MutationResult:
            with backend.atomic():
                borrower = self._load(backend, borrower_id)

                total_interest = compute_total_interest(
                    borrower.loan_amount, borrower.interest_rate,
                    borrower.term, borrower.interest_type
                )
                total_payments = borrower.total_payments + payment.amount
                new_balance = compute_remaining_balance(
                    borrower.loan_amount, total_interest, borrower.total_penalties,
                    total_payments, floor=True
                )

                if not backend.append_to_history(
                    borrower_id, HistoryKind.PAYMENTS, payment,
                    {"remaining_balance": new_balance}
                ):
                    raise NotFoundError("Borrower not found.")

            log_action(
                logger, "info", f"Payment added for borrower {borrower_id}",
                action="apply_payment", resource=borrower_id, backend=backend.name,
                extra={"amount": str(payment.amount), "remainingBalance": str(new_balance)}
            )
            return MutationResult("Payment added successfully.", new_balance)

        return self._write(apply)

    def apply_penalty(self, borrower_id: Optional[str], penalty_data: Dict[str, Any]) -> MutationResult:
        """
        Append a penalty and recompute totals. The balance is not floored.

        Raises:
            ValidationError: missing id or unparseable amount
            NotFoundError: no borrower with this id
        """
        borrower_id = self._require_id(borrower_id)
        penalty = normalize_penalty_input(penalty_data or {})

        def apply(backend: StorageBackend) -> MutationResult:
            with backend.atomic():
                borrower = self._load(backend, borrower_id)

                penalties = borrower.penalties + [penalty]
                new_total_penalties = sum_amounts(penalties)
                new_balance = recalculate(replace(borrower, penalties=penalties))

                if not backend.append_to_history(
                    borrower_id, HistoryKind.PENALTIES, penalty,
                    {"total_penalties": new_total_penalties, "remaining_balance": new_balance}
                ):
                    raise NotFoundError("Borrower not found.")

            log_action(
                logger, "info", f"Penalty added for borrower {borrower_id}",
                action="apply_penalty", resource=borrower_id, backend=backend.name,
                extra={"amount": str(penalty.amount), "reason": penalty.reason}
            )
            return MutationResult("Penalty added successfully.", new_balance, new_total_penalties)

        return self._write(apply)

    def apply_mutation(self, borrower_id: Optional[str], body: Dict[str, Any]) -> MutationResult:
        """Dispatch a {"payment": ...} or {"penalty": ...} request body"""
        borrower_id = self._require_id(borrower_id)
        body = body or {}

        if body.get("payment") is not None:
            return self.apply_payment(borrower_id, body["payment"])
        if body.get("penalty") is not None:
            return self.apply_penalty(borrower_id, body["penalty"])

        raise ValidationError("Invalid request. Specify 'payment' or 'penalty'.")

    def delete_borrower(self, borrower_id: Optional[str]) -> None:
        """
        Permanently remove a borrower.

        Raises:
            NotFoundError: no borrower with this id
        """
        borrower_id = self._require_id(borrower_id)

        def remove(backend: StorageBackend) -> None:
            if not backend.remove(borrower_id):
                raise NotFoundError("Borrower not found.")
            log_action(
                logger, "info", f"Deleted borrower {borrower_id}",
                action="delete_borrower", resource=borrower_id, backend=backend.name
            )

        self._write(remove)
