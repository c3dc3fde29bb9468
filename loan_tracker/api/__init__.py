"""
Loan Tracker API Application Factory
"""

import os
import platform
import sys
import tempfile
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .dependencies import LoanSystem, get_loan_system
from .loans import router as loans_router
from .. import __version__


AVAILABLE_ENDPOINTS = [
    "/api/loans (main loans API)",
    "/api/health (health check)",
    "/api/debug (debug information)",
]


def _directory_writable(path) -> bool:
    """Try writing a scratch file next to the data file"""
    try:
        os.makedirs(path, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, prefix=".write-test-"):
            pass
        return True
    except OSError:
        return False


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Tracker API",
        description="Borrower loans, payments and penalties with MongoDB or file storage",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(loans_router, prefix="/api/loans", tags=["Loans"])

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        """Unmatched paths get a listing of the real endpoints"""
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(status_code=404, content={
                "error": "API endpoint not found",
                "message": f"The requested path {request.url.path} does not exist",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            })
        return await http_exception_handler(request, exc)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": "Loan tracker API is running",
        }

    @app.get("/api/debug")
    def debug_info(system: LoanSystem = Depends(get_loan_system)):
        """Runtime and storage diagnostics"""
        data_dir = system.file_store.path.parent
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": {
                "pythonVersion": sys.version.split()[0],
                "platform": platform.platform(),
                "mongodbUri": system.config.database_configured,
                "mongodbDb": system.config.mongodb_db,
                "cwd": os.getcwd(),
            },
            "filesystem": {
                "dataFile": str(system.file_store.path),
                "dataFileExists": system.file_store.path.exists(),
                "canWriteDataDir": _directory_writable(data_dir),
            },
            "storage": system.selector.describe(),
        }

    return app


app = create_app()
