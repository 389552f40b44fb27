#!/usr/bin/env python
"""
Development server entrypoint for the Contract Reminders API
"""
import logging
import os
import sys

import uvicorn

from contract_reminders.app import app


if __name__ == "__main__":
    logger = logging.getLogger(__name__)
    
    logger.info("=" * 50)
    logger.info("Contract Reminders API - Starting Up")
    logger.info("=" * 50)
    logger.info(f"Python version: {sys.version}")
    logger.info(f"DATABASE_URL: {'SET' if os.getenv('DATABASE_URL') else 'NOT SET (using in-memory SQLite)'}")
    
    try:
        port = int(os.getenv("PORT", 8000))
    except ValueError:
        logger.warning(f"Invalid PORT value: {os.getenv('PORT')}, using default 8000")
        port = 8000
    
    logger.info(f"Starting Contract Reminders API server on port {port}")
    logger.info(f"Health check endpoint: http://0.0.0.0:{port}/health")
    
    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=port,
            log_config=None,
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)
