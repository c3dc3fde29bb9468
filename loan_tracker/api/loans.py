"""
Borrower loan endpoints
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import LoanSystem, get_loan_system
from .schemas import CreateBorrowerRequest, MutationRequest
from ..errors import LoanTrackerError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..loans import MutationResult
from ..models import encode_value


router = APIRouter()

logger = get_logger("loan_tracker.api")


@contextmanager
def service_errors(action: str):
    """Map service exceptions onto HTTP outcomes"""
    try:
        yield
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LoanTrackerError as e:
        logger.error(f"Error during {action}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error during {action}")
        raise HTTPException(status_code=500, detail="Internal Server Error") from e


def mutation_response(result: MutationResult) -> Dict[str, Any]:
    response = {
        "message": result.message,
        "remainingBalance": encode_value(result.remaining_balance),
    }
    if result.total_penalties is not None:
        response["totalPenalties"] = encode_value(result.total_penalties)
    return response


@router.get("")
def list_borrowers(system: LoanSystem = Depends(get_loan_system)) -> List[Dict[str, Any]]:
    """List all borrowers, newest first"""
    with service_errors("list borrowers"):
        borrowers = system.loan_service.list_borrowers()
    return [b.to_document() for b in borrowers]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_borrower(
    request: CreateBorrowerRequest,
    system: LoanSystem = Depends(get_loan_system)
) -> Dict[str, Any]:
    """Create a new borrower"""
    with service_errors("create borrower"):
        borrower = system.loan_service.create_borrower(
            request.model_dump(by_alias=True, exclude_none=True)
        )
    return borrower.to_document()


@router.get("/{borrower_id}")
def get_borrower(borrower_id: str, system: LoanSystem = Depends(get_loan_system)) -> Dict[str, Any]:
    """Get borrower by ID"""
    with service_errors("get borrower"):
        borrower = system.loan_service.get_borrower(borrower_id)
    return borrower.to_document()


@router.put("")
def update_borrower(
    request: MutationRequest,
    id: Optional[str] = Query(None),
    system: LoanSystem = Depends(get_loan_system)
) -> Dict[str, Any]:
    """Add a payment or a penalty to a borrower"""
    with service_errors("update borrower"):
        result = system.loan_service.apply_mutation(id, request.model_dump(exclude_none=True))
    return mutation_response(result)


@router.delete("")
def delete_borrower(
    id: Optional[str] = Query(None),
    system: LoanSystem = Depends(get_loan_system)
) -> Dict[str, Any]:
    """Delete a borrower"""
    with service_errors("delete borrower"):
        system.loan_service.delete_borrower(id)
    return {"message": "Borrower deleted successfully."}
