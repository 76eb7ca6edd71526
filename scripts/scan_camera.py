#!/usr/bin/env python3
"""
Camera Scan Script
==================

Standalone script that runs a scan session against a local camera
without the HTTP service.

This script:
    1. Opens the configured camera
    2. Scans for a configurable duration
    3. Logs pipeline telemetry every few seconds
    4. Prints every batch result and a final summary

Prerequisites:
    - A camera readable by OpenCV
    - INFINITY_OCR_API_KEY (or GEMINI_API_KEY) set
    - pip install -e .

Usage:
    python scripts/scan_camera.py --duration 60
    python scripts/scan_camera.py --device 1 --max-frames 3
"""

import argparse
import asyncio
import logging
import sys
import time

from infinity_ocr.config import settings
from infinity_ocr.models.log import LogStatus
from infinity_ocr.ocr import GeminiTransport, MissingCredentialError
from infinity_ocr.pipeline import ScanSession
from infinity_ocr.stream import DeviceError, OpenCVVideoSource


logger = logging.getLogger(__name__)


async def run_scan(
    device: str,
    duration: int,
    max_frames: int,
    report_interval: int,
) -> dict:
    """
    Run one scan session.

    Args:
        device: OpenCV device index or URL
        duration: Scan duration in seconds
        max_frames: Frames per batch
        report_interval: Seconds between progress reports

    Returns:
        Final metrics dict
    """
    config = settings.scanner.model_copy(update={"max_frames": max_frames})

    logger.info("=" * 60)
    logger.info("Infinity OCR Camera Scan")
    logger.info("=" * 60)
    logger.info(f"Device: {device}")
    logger.info(f"Model: {config.model}")
    logger.info(f"Duration: {duration} seconds")
    logger.info(f"Batch size: {config.max_frames}")
    logger.info("=" * 60)

    session = ScanSession(
        config=config,
        source=OpenCVVideoSource(
            device=device,
            width=settings.video.width,
            height=settings.video.height,
        ),
        transport=GeminiTransport(),
        analysis=settings.analysis,
        encoding=settings.encoding,
        autofocus=settings.autofocus,
        tick_interval_sec=settings.video.tick_interval_sec,
    )

    try:
        await session.start()
    except (MissingCredentialError, DeviceError) as e:
        logger.error(f"Cannot start scan: {e}")
        return {"batches": 0, "succeeded": 0, "failed": 0}

    start_time = time.time()
    last_report_time = start_time
    reported_ids = set()

    try:
        while time.time() - start_time < duration:
            for entry in reversed(session.logs()):
                if entry.is_settled and entry.id not in reported_ids:
                    reported_ids.add(entry.id)
                    logger.info(f"[{entry.status.value}] {entry.text}")

            if time.time() - last_report_time >= report_interval:
                telemetry = session.telemetry()
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
                logger.info(f"  Sharpness: {telemetry.current_sharpness}")
                logger.info(f"  Buffer: {telemetry.buffer_fill}/{telemetry.max_frames}")
                logger.info(f"  Sending: {telemetry.dispatch_in_flight}")
                logger.info(f"  Frames scored: {telemetry.frames_scored}")
                logger.info(f"  Frames captured: {telemetry.frames_captured}")
                logger.info(f"  Refocus attempts: {telemetry.refocus_attempts}")
                last_report_time = time.time()

            await asyncio.sleep(0.5)

    except KeyboardInterrupt:
        logger.info("Scan interrupted by user")
    finally:
        await session.shutdown()

    counts = session.log_store.counts()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {time.time() - start_time:.1f} seconds")
    logger.info(f"Batches: {len(session.log_store)}")
    logger.info(f"Succeeded: {counts[LogStatus.SUCCESS.value]}")
    logger.info(f"Failed: {counts[LogStatus.ERROR.value]}")
    logger.info("=" * 60)

    return {
        "batches": len(session.log_store),
        "succeeded": counts[LogStatus.SUCCESS.value],
        "failed": counts[LogStatus.ERROR.value],
    }


def main():
    parser = argparse.ArgumentParser(
        description="Run the Infinity OCR pipeline against a local camera"
    )
    parser.add_argument(
        "--device",
        type=str,
        default=settings.video.device,
        help="OpenCV device index or stream URL",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Scan duration in seconds (default: 60)",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=settings.scanner.max_frames,
        help="Frames per batch, 1-20",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )

    args = parser.parse_args()

    if not 1 <= args.max_frames <= 20:
        parser.error("--max-frames must be between 1 and 20")

    result = asyncio.run(run_scan(
        device=args.device,
        duration=args.duration,
        max_frames=args.max_frames,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if result["succeeded"] > 0 else 1)


if __name__ == "__main__":
    main()
