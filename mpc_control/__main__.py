"""
Main entry point when running the mpc_control module with python -m.
"""

import argparse
import asyncio
import logging
import sys

from .config import LATENCY_SECONDS, WS_HOST, WS_PORT, ControllerConfig
from .server import main, setup_logging

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="MPC path-tracking controller serving the driving simulator over WebSocket"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--host", default=WS_HOST, help=f"Interface to bind (default: {WS_HOST})")
    parser.add_argument("--port", type=int, default=WS_PORT, help=f"Port to listen on (default: {WS_PORT})")
    parser.add_argument(
        "--latency",
        type=float,
        default=LATENCY_SECONDS,
        help=f"Actuation latency emulated before each reply, seconds (default: {LATENCY_SECONDS})",
    )
    parser.add_argument(
        "--record",
        metavar="DIR",
        default=None,
        help="Write per-cycle CSV logs under DIR/results/",
    )
    parser.add_argument(
        "--no-smoothing", action="store_true", help="Disable moving-average smoothing of actuators"
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    config = ControllerConfig(smoothing_window=1) if args.no_smoothing else ControllerConfig()

    try:
        asyncio.run(
            main(
                config=config,
                host=args.host,
                port=args.port,
                latency=args.latency,
                output_dir=args.record,
            )
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
