#!/usr/bin/env python3
"""
WebSocket Server for the MPC Controller

This module accepts connections from the driving simulator, runs one MPC
control cycle per telemetry event and replies with a steering/throttle
command. Messages use socket.io event framing over a plain WebSocket:
``42["telemetry", {...}]`` inbound and ``42["steer", {...}]`` outbound.
"""

import asyncio
import json
import logging
import signal
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import websockets

from .config import LATENCY_SECONDS, TERM_BLUE, TERM_RESET, WS_HOST, WS_PORT, ControllerConfig
from .controller import MPCController
from .data_collector import DataCollector

EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def extract_event_payload(message: str) -> Optional[str]:
    """Extract the JSON event array from a socket.io frame.

    Args:
        message: Raw frame text, e.g. ``42["telemetry",{...}]``.

    Returns:
        The ``[...]`` array text, or None if the frame carries no data (the
        simulator sends ``null`` while in manual mode).
    """
    if "null" in message:
        return None
    start = message.find("[")
    end = message.rfind("}]")
    if start != -1 and end != -1:
        return message[start : end + 2]
    return None


def handle_frame(message: Union[str, bytes], controller: MPCController) -> Optional[str]:
    """Process one inbound frame and build the reply.

    Args:
        message: Raw frame from the simulator.
        controller: Controller for this session.

    Returns:
        Reply frame text, or None if nothing should be sent.
    """
    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            logging.error(f"Error decoding frame: {e}")
            return None

    if len(message) <= 2 or not message.startswith(EVENT_PREFIX):
        return None

    payload = extract_event_payload(message)
    if payload is None:
        return MANUAL_MESSAGE

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        logging.error(f"Error parsing JSON: {e}")
        return None

    if not isinstance(event, list) or not event:
        logging.warning(f"Unexpected event frame: {payload[:80]}")
        return None

    if event[0] != "telemetry":
        logging.debug(f"Ignoring event: {event[0]}")
        return None

    data = event[1] if len(event) > 1 else None
    command = controller.handle_telemetry(data)
    if command is None:
        return None

    return f'{EVENT_PREFIX}["steer",{json.dumps(command.to_message())}]'


class TelemetryServer:
    """WebSocket server running one MPC session per connection.

    Attributes:
        host: Interface to bind.
        port: Port to listen on.
        config: Controller configuration shared (read-only) by all sessions.
        latency: Delay before each steering reply (seconds).
        output_dir: Base directory for run logs, or None to disable logging.
    """

    def __init__(
        self,
        host: str = WS_HOST,
        port: int = WS_PORT,
        config: Optional[ControllerConfig] = None,
        latency: float = LATENCY_SECONDS,
        output_dir: Optional[str] = None,
    ) -> None:
        if latency < 0:
            raise ValueError(f"Latency must be non-negative, got {latency}")

        self.host = host
        self.port = port
        self.config = config if config is not None else ControllerConfig()
        self.latency = latency
        self.output_dir = output_dir
        self.session_count = 0
        self._stop: Optional[asyncio.Future] = None

    def _make_collector(self) -> Optional[DataCollector]:
        if self.output_dir is None:
            return None
        # results/run_YYYYMMDD_HHMMSS_sN/, one directory per session
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = Path(self.output_dir) / "results" / f"run_{timestamp}_s{self.session_count}"
        return DataCollector(output_dir=self.output_dir, run_dir=str(run_dir))

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one simulator connection until it closes."""
        self.session_count += 1
        logging.info(f"{TERM_BLUE}✓ Simulator connected (session {self.session_count}){TERM_RESET}")

        collector = self._make_collector()
        if collector is not None:
            collector.setup()
        controller = MPCController(self.config, data_collector=collector)

        try:
            async for message in websocket:
                reply = handle_frame(message, controller)
                if reply is None:
                    continue
                if reply != MANUAL_MESSAGE and self.latency > 0:
                    await asyncio.sleep(self.latency)
                await websocket.send(reply)
        except websockets.exceptions.ConnectionClosed:
            logging.warning("Connection closed by simulator")
        finally:
            if collector is not None:
                collector.cleanup()
            logging.info("Disconnected")

    def stop(self) -> None:
        """Signal the server to stop."""
        if self._stop is not None and not self._stop.done():
            self._stop.set_result(None)

    async def run(self) -> None:
        """Listen until ``stop`` is called."""
        loop = asyncio.get_running_loop()
        self._stop = loop.create_future()

        async with websockets.serve(self.handle_connection, self.host, self.port):
            logging.info(f"{TERM_BLUE}Listening on ws://{self.host}:{self.port}{TERM_RESET}")
            await self._stop


async def main(
    config: Optional[ControllerConfig] = None,
    host: str = WS_HOST,
    port: int = WS_PORT,
    latency: float = LATENCY_SECONDS,
    output_dir: Optional[str] = None,
) -> None:
    """Main entry point for the WebSocket server.

    Creates a TelemetryServer, sets up signal handlers for graceful shutdown,
    and serves until interrupted.
    """
    server = TelemetryServer(host=host, port=port, config=config, latency=latency, output_dir=output_dir)
    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        """Handle shutdown signals (SIGINT, SIGTERM)."""
        logging.info("\nShutdown signal received...")
        server.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await server.run()
