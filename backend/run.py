#!/usr/bin/env python3
"""
AdminSync Application Runner
"""

import uvicorn
from loguru import logger
import sys
import os

# Add the current directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, current_dir)

from adminsync.config import settings
from adminsync.logging_setup import setup_logging


def main():
    """Main application entry point"""
    setup_logging(settings.log_level)
    logger.info(f"🚀 Starting {settings.app_name} backend...")
    logger.info(f"🔌 Upstream admin API: {settings.api_base_url}")
    logger.info(f"🌐 Server will run on: http://{settings.host}:{settings.port}")

    try:
        uvicorn.run(
            "adminsync.main:app",
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level=settings.log_level.lower(),
            access_log=settings.debug,
        )
    except KeyboardInterrupt:
        logger.info("🛑 Application stopped by user")
    except Exception as e:
        logger.error(f"❌ Failed to start application: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
