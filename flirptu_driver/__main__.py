"""
Main entry point for the FLIR PTU driver.

Usage:
    python -m flirptu_driver [--config config.json]
"""

import argparse
import sys
import logging
import signal

import uvicorn

from flirptu_driver import __version__
from flirptu_driver.api.app import create_app
from flirptu_driver.config.loader import load_config, ConfigurationError
from flirptu_driver.protocol.port import SerialBytePort
from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.simulator.mock_port import MockPTUPort
from flirptu_driver.utils.exceptions import PTUException
from flirptu_driver.utils.logging_setup import setup_logging


logger = logging.getLogger(__name__)


# Global resources for cleanup
driver = None


def signal_handler(signum, frame):
    """Handle shutdown signals (SIGINT, SIGTERM)."""
    logger.info(f"Received signal {signum}, shutting down...")

    if driver and driver.connected:
        driver.disconnect()

    sys.exit(0)


def main():
    """Main application entry point."""
    global driver

    parser = argparse.ArgumentParser(description="FLIR PTU Driver")
    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to configuration file (default: config.json)"
    )
    parser.add_argument(
        "--simulator",
        action="store_true",
        help="Use the simulated controller regardless of config.json"
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    logger.info("=" * 60)
    logger.info(f"FLIR PTU Driver v{__version__}")
    logger.info("=" * 60)

    if args.simulator or config.simulator.enabled:
        logger.info("Using SIMULATOR mode")
        port = MockPTUPort(config.simulator)
    else:
        logger.info(f"Using REAL HARDWARE mode on {config.connection.url}")
        port = SerialBytePort(config.connection)

    driver = PTUDriver(port, config.protocol)

    if config.connection.connect_on_startup:
        try:
            driver.connect()
        except PTUException as e:
            logger.error(f"Failed to connect on startup: {e}")
            logger.warning("Server will start disconnected; use PUT /api/v1/ptu/connect to retry")

    app = create_app(config, driver)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting API server on {config.server.ip}:{config.server.port}")
    logger.info("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=config.server.ip,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=False
        )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if driver and driver.connected:
            driver.disconnect()

        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
