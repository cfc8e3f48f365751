"""Main entry point for the capture server"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from viewport_core.capture import CaptureOrchestrator
from viewport_core.config import config
from viewport_server.app import create_app

logger = logging.getLogger(__name__)


def _raise_exit(signum, _frame):
    raise SystemExit(0)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="viewport-server", description="Local multi-viewport screenshot server")
    parser.add_argument("--port", type=int, default=config.server_port, help="Port to listen on (default: %(default)s)")
    parser.add_argument("--host", default=config.server_host, help="Interface to bind (default: %(default)s)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the capture server"""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    orchestrator = CaptureOrchestrator()
    app = create_app(orchestrator)

    # Browser failure is cached; the server still starts and reports 503
    if orchestrator.start():
        logger.info("✓ Browser ready")
    else:
        logger.warning(f"✗ {orchestrator.init_error}")
        logger.warning("  The server will start in degraded mode; captures will fail until restarted.")

    signal.signal(signal.SIGTERM, _raise_exit)

    logger.info(f"Starting viewport server on http://{args.host}:{args.port}")
    logger.info(f"Devices: {', '.join(orchestrator.registry.names())}")
    try:
        app.run(host=args.host, port=args.port, debug=False, use_reloader=False, threaded=True)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        orchestrator.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
