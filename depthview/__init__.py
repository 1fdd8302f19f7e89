"""Depth camera frame processing, capture saving, settings, logging and a WebSocket command server."""

__version__ = "0.1.0"

__all__ = [
    "appconfig",
    "depthstrategy",
    "frames",
    "imageutil",
    "logger",
    "outputsaver",
    "pipeline",
    "processor",
    "processthread",
    "rgbstrategy",
    "server",
    "strategy",
]