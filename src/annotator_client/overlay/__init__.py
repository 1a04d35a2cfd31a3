"""
Overlay Module
==============

Bounding box rendering in display space.

Components:
    - ScaleTransform / Rect: Source-to-display coordinate mapping
    - AnnotationOverlay: Surface owner and rectangle renderer
    - DisplaySurface / VideoDisplay: Display collaborator

DESIGN RULES:
    - Does NOT import transport or capture scheduling
    - Degenerate dimensions are skipped, never raised
"""

from annotator_client.overlay.display import DisplaySurface, VideoDisplay
from annotator_client.overlay.renderer import LINE_WIDTH, AnnotationOverlay
from annotator_client.overlay.transform import Rect, ScaleTransform


__all__ = [
    "Rect",
    "ScaleTransform",
    "AnnotationOverlay",
    "LINE_WIDTH",
    "DisplaySurface",
    "VideoDisplay",
]
