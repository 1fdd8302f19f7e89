"""Base class for per-frame processing strategies."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import IntEnum
from typing import Any

from depthview.frames import (
    CameraParameter,
    CameraParameterSource,
    FrameData,
    OutputData2D,
    OutputDataPort,
)


class StrategyType(IntEnum):
    """Kinds of processing strategy."""

    DEPTH = 0
    RGB = 1
    CLOUD_POINT = 2


class ProcessStrategy(ABC):
    """Turns frames into outputs, reloading camera parameters when they change."""

    def __init__(self, strategy_type: StrategyType) -> None:
        self.strategy_type = StrategyType(strategy_type)
        self.dependent_parameters: list[CameraParameter] = []
        self.camera: CameraParameterSource | None = None
        self.camera_parameters: dict[CameraParameter, Any] = {}
        self.enabled = True
        self._dirty = True
        self._lock = threading.Lock()
        self._subscribers_2d: list[Callable[[OutputData2D], None]] = []

    def set_camera(self, camera: CameraParameterSource) -> None:
        """Use this camera as the source of parameter values."""
        self.camera = camera

    def set_camera_para_state(self, para_id: int, dirty: bool) -> None:
        """Mark the parameters stale if the strategy depends on ``para_id``."""
        with self._lock:
            if para_id in self.dependent_parameters:
                self._dirty = dirty

    def process(self, frame_data: FrameData, output_port: OutputDataPort) -> None:
        """Reload parameters if stale, then process the frame."""
        with self._lock:
            dirty, self._dirty = self._dirty, False
        if dirty:
            self.load_camera_parameters()
        self.do_process(frame_data, output_port)

    def load_camera_parameters(self) -> dict[CameraParameter, Any]:
        """Read every dependent parameter from the camera."""
        if self.camera is None:
            raise RuntimeError("no camera set for strategy")
        self.camera_parameters = {
            para: self.camera.get_parameter(para) for para in self.dependent_parameters
        }
        return self.camera_parameters

    @abstractmethod
    def do_process(self, frame_data: FrameData, output_port: OutputDataPort) -> None:
        """Produce outputs for one frame into ``output_port``."""
        raise NotImplementedError

    def subscribe_2d(self, callback: Callable[[OutputData2D], None]) -> None:
        """Call ``callback`` with every 2D output this strategy emits."""
        self._subscribers_2d.append(callback)

    def emit_output_2d(self, output: OutputData2D) -> None:
        """Deliver a 2D output to all subscribers."""
        for callback in list(self._subscribers_2d):
            callback(output)