#!/usr/bin/env python3
"""
Loan Tracker Entry Point

Starts the FastAPI server with MongoDB storage when MONGODB_URI is set,
file storage otherwise.
"""

import sys

import uvicorn

from loan_tracker.config import get_config
from loan_tracker.logging_config import setup_logging


def run_server(host: str, port: int, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "loan_tracker.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format)

    logger.info(f"Starting Loan Tracker on http://{config.api_host}:{config.api_port}")
    if config.database_configured:
        logger.info(f"MongoDB database: {config.mongodb_db}")
    else:
        logger.info(f"No MongoDB URI provided, using file storage at {config.data_file}")

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down Loan Tracker")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
