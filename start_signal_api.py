"""
Start Signal Engine API Server

Run the Forecast Signal Engine REST API on port 8004.
Settings are read from the environment (and a local .env file):
SYNTHREX_SNAPSHOT_FILE, SYNTHREX_TRACKING_FILE, SYNTHREX_BUFFER_CAPACITY.
"""

import uvicorn
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from synthrex.config import EngineConfig

# Ensure logs directory exists
Path("logs").mkdir(exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('logs/synthrex_api.log')
    ]
)

logger = logging.getLogger(__name__)


def main():
    """Start Signal Engine API server"""
    load_dotenv()
    config = EngineConfig.from_env()

    logger.info(
        f"Forecast signal engine (config {config.compute_hash()}): "
        f"snapshots from {config.store.snapshot_file}, "
        f"tracking log at {config.tracker.tracking_file}"
    )
    logger.info("Serving /analyze, /regime/{symbol}, /signals and /health on http://127.0.0.1:8004")

    try:
        uvicorn.run(
            "synthrex.signal_engine.api:app",
            host="127.0.0.1",
            port=8004,
            log_level="info",
            reload=False
        )
    except KeyboardInterrupt:
        logger.info("Shutting down Signal Engine API...")
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
