#!/usr/bin/env python3
"""
Mock Annotation Service
=======================

Standalone WebSocket server that answers every received frame with a
bounding box annotation, for running the client without the real service.

This script:
    1. Accepts {"frame": <base64 JPEG>} messages
    2. Decodes each frame to validate it and read its size
    3. Waits a configurable delay (to exercise rate control)
    4. Replies with a centred box, scaled to native-frame pixels, and fixed
       advisory texts

Usage:
    python scripts/mock_annotation_service.py --port 5000
    python scripts/mock_annotation_service.py --delay-ms 120

    ANNOTATOR_SERVICE_URL=ws://localhost:5000 python -m annotator_client.main
"""

import argparse
import asyncio
import json
import logging
import os
import sys

import websockets
from websockets.exceptions import ConnectionClosed

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from annotator_client.capture.encoder import decode_jpeg_b64
from annotator_client.errors import FrameEncodeError


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_reply(width: int, height: int, native_width: int) -> dict:
    """
    Centred box covering half of each dimension.

    The client sends downsampled frames but draws boxes in native-frame
    pixels, so the box is scaled back up by native_width / width.
    """
    scale = native_width / width
    return {
        "x": round(width / 4 * scale),
        "y": round(height / 4 * scale),
        "w": round(width / 2 * scale),
        "h": round(height / 2 * scale),
        "colorRectangle": [0, 255, 0],
        "orientation": "frontal",
        "text4User": "Hold still",
        "textFacDis": "Face distance OK",
    }


async def handle_client(websocket, delay_s: float, native_width: int) -> None:
    logger.info("Client connected")
    frames = 0
    try:
        async for message in websocket:
            try:
                payload = json.loads(message)["frame"]
                frame = decode_jpeg_b64(payload)
            except (ValueError, KeyError, TypeError, FrameEncodeError) as e:
                logger.warning(f"Bad frame message: {e}")
                continue

            frames += 1
            if delay_s > 0:
                await asyncio.sleep(delay_s)

            height, width = frame.shape[:2]
            await websocket.send(json.dumps(build_reply(width, height, native_width)))

            if frames % 100 == 0:
                logger.info(f"Annotated {frames} frames ({width}x{height})")
    except ConnectionClosed:
        pass
    logger.info(f"Client disconnected after {frames} frames")


async def serve(host: str, port: int, delay_ms: float, native_width: int) -> None:
    delay_s = delay_ms / 1000.0

    async def handler(websocket):
        await handle_client(websocket, delay_s, native_width)

    logger.info(f"Mock annotation service on ws://{host}:{port} (delay {delay_ms}ms)")
    async with websockets.serve(handler, host, port):
        await asyncio.Future()


def main():
    parser = argparse.ArgumentParser(description="Mock annotation service")
    parser.add_argument("--host", type=str, default="localhost", help="Bind host")
    parser.add_argument("--port", type=int, default=5000, help="Bind port (default: 5000)")
    parser.add_argument(
        "--delay-ms",
        type=float,
        default=0.0,
        help="Artificial processing delay per frame in milliseconds",
    )
    parser.add_argument(
        "--native-width",
        type=int,
        default=640,
        help="Width of the client camera frames, used to scale boxes (default: 640)",
    )
    args = parser.parse_args()

    try:
        asyncio.run(serve(args.host, args.port, args.delay_ms, args.native_width))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
