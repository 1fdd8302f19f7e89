"""Wires camera parameters, processing strategies and output subscribers together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from depthview.depthstrategy import DepthProcessStrategy
from depthview.frames import (
    CameraDataType,
    CameraParameter,
    CameraParameterSource,
    OutputData2D,
)
from depthview.processor import Processor
from depthview.rgbstrategy import RgbProcessStrategy
from depthview.strategy import ProcessStrategy, StrategyType

log = logging.getLogger(__name__)

_DEPTH_WINDOWS = (CameraDataType.L, CameraDataType.R, CameraDataType.DEPTH)


class ProcessingPipeline:
    """Owns the processor and the strategies built for the connected camera."""

    def __init__(self, camera: CameraParameterSource) -> None:
        self.camera = camera
        self.processor = Processor()
        self.show_3d_texture = False
        self._strategies: dict[StrategyType, ProcessStrategy | None] = {
            kind: None for kind in StrategyType
        }
        self._subscribers_2d: list[Callable[[OutputData2D], None]] = []

    @property
    def strategies(self) -> dict[StrategyType, ProcessStrategy | None]:
        """The current strategy of each type, None where there is none."""
        return dict(self._strategies)

    def _remove_strategies(self) -> None:
        for kind, strategy in self._strategies.items():
            if strategy is not None:
                self.processor.remove_strategy(strategy)
                self._strategies[kind] = None

    def update_strategies(self) -> None:
        """Rebuild the strategies for the camera's current capabilities."""
        self._remove_strategies()
        self._strategies[StrategyType.DEPTH] = DepthProcessStrategy()
        if self.camera.get_parameter(CameraParameter.HAS_RGB):
            self._strategies[StrategyType.RGB] = RgbProcessStrategy()

        for strategy in self._strategies.values():
            if strategy is None:
                continue
            strategy.subscribe_2d(self._emit_2d)
            strategy.set_camera(self.camera)
            self.processor.add_strategy(strategy)

    def on_window_layout_changed(self, windows: Iterable[CameraDataType]) -> None:
        """Enable only the strategies whose outputs are shown."""
        shown = set(windows)
        for kind, strategy in self._strategies.items():
            if strategy is None:
                continue
            if kind == StrategyType.DEPTH:
                strategy.enabled = any(w in shown for w in _DEPTH_WINDOWS)
            elif kind == StrategyType.CLOUD_POINT:
                strategy.enabled = CameraDataType.POINT_CLOUD in shown
            elif kind == StrategyType.RGB:
                strategy.enabled = CameraDataType.RGB in shown

    def on_camera_para_updated(self, para_id: int) -> None:
        """Tell every strategy that a camera parameter changed."""
        for strategy in self._strategies.values():
            if strategy is not None:
                strategy.set_camera_para_state(para_id, True)

    def set_show_3d_texture(self, texture: bool) -> None:
        """Record whether point clouds are shown with texture."""
        self.show_3d_texture = bool(texture)

    def subscribe_2d(self, callback: Callable[[OutputData2D], None]) -> None:
        """Call ``callback`` with every 2D output any strategy emits."""
        self._subscribers_2d.append(callback)

    def _emit_2d(self, output: OutputData2D) -> None:
        for callback in list(self._subscribers_2d):
            callback(output)