"""
Loan system wiring and FastAPI dependencies
"""

from functools import partial
from typing import Optional

from ..config import LoanTrackerConfig, get_config
from ..loans import LoanService
from ..selector import BackendSelector
from ..storage import DatabaseStore, FileStore


class LoanSystem:
    """Loan tracker with storage, selector and service initialized"""

    def __init__(self, config: Optional[LoanTrackerConfig] = None):
        self.config = config or get_config()

        self.file_store = FileStore(self.config.data_file)

        database_factory = None
        if self.config.database_configured:
            database_factory = partial(
                DatabaseStore.connect,
                self.config.mongodb_uri,
                self.config.mongodb_db,
                collection_name=self.config.mongodb_collection,
                timeout_ms=self.config.mongodb_timeout_ms,
            )

        self.selector = BackendSelector(self.file_store, database_factory)
        self.loan_service = LoanService(self.selector)


# Global loan system instance, created on first request
_loan_system: Optional[LoanSystem] = None


def get_loan_system() -> LoanSystem:
    global _loan_system
    if _loan_system is None:
        _loan_system = LoanSystem()
    return _loan_system
