"""
Pipeline Module
===============

Capture -> score -> retain -> dispatch -> merge.

Components:
    - CaptureLoop: Per-tick sampling, scoring and capture gating
    - BatchDispatcher: IDLE/SENDING state machine around the OCR call
    - LogStore: Append-only record of batch outcomes
    - ScanSession: Controller owning one scanning run
"""

from infinity_ocr.pipeline.log_store import LogStore
from infinity_ocr.pipeline.dispatcher import BatchDispatcher, DispatchState
from infinity_ocr.pipeline.capture_loop import CaptureLoop
from infinity_ocr.pipeline.session import ScanSession

__all__ = [
    "LogStore",
    "BatchDispatcher",
    "DispatchState",
    "CaptureLoop",
    "ScanSession",
]
