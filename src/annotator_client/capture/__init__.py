"""
Capture Module
==============

Video acquisition, frame encoding and the rate-controlled capture loop.

Components:
    - VideoSource / CameraSource / open_camera: Acquisition collaborator
    - downsample / encode_jpeg_b64: Frame codec (OpenCV)
    - FrameCaptureScheduler: Periodic capture, encode and send
"""

from annotator_client.capture.encoder import (
    JPEG_QUALITY,
    TARGET_WIDTH,
    decode_jpeg_b64,
    downsample,
    downsample_size,
    encode_jpeg_b64,
)
from annotator_client.capture.scheduler import FrameCaptureScheduler, SchedulerMetrics
from annotator_client.capture.source import CameraSource, VideoSource, open_camera


__all__ = [
    "VideoSource",
    "CameraSource",
    "open_camera",
    "TARGET_WIDTH",
    "JPEG_QUALITY",
    "downsample",
    "downsample_size",
    "encode_jpeg_b64",
    "decode_jpeg_b64",
    "FrameCaptureScheduler",
    "SchedulerMetrics",
]
