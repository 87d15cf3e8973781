"""
app/connectors package marker.
"""

from app.connectors.image_probe import (
    HttpImageProbe,
    ImageProbe,
    ImageProbeError,
    ImageProbeResult,
    StaticImageProbe,
)

__all__ = [
    "HttpImageProbe",
    "ImageProbe",
    "ImageProbeError",
    "ImageProbeResult",
    "StaticImageProbe",
]
