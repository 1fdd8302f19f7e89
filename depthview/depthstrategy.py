"""Strategy turning depth and infrared streams into images."""

from __future__ import annotations

import logging
from collections import deque

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from depthview.frames import (
    CameraDataType,
    CameraParameter,
    FilterType,
    FrameData,
    Intrinsics,
    OutputData2D,
    OutputDataPort,
    StreamData,
    StreamFormat,
    TriggerMode,
)
from depthview.strategy import ProcessStrategy, StrategyType

log = logging.getLogger(__name__)

_MIN_DEPTH_SCALE = 1e-7


def _as_depth(data, width: int, height: int) -> np.ndarray:
    count = width * height
    if isinstance(data, np.ndarray):
        flat = data.reshape(-1)
        if flat.size < count:
            raise ValueError(f"need {count} depth samples, got {flat.size}")
        flat = flat[:count]
    else:
        flat = np.frombuffer(bytes(data), dtype="<u2", count=count)
    return flat.astype(np.float32).reshape(height, width)


def _windows(depth: np.ndarray, size: int) -> np.ndarray:
    radius = size // 2
    padded = np.pad(depth, radius, mode="edge")
    side = 2 * radius + 1
    return sliding_window_view(padded, (side, side))


def _average_blur(depth: np.ndarray, size: int) -> np.ndarray:
    if size <= 1:
        return depth
    return _windows(depth, size).mean(axis=(-2, -1)).astype(np.float32)


def _median_blur(depth: np.ndarray, size: int) -> np.ndarray:
    if size <= 1:
        return depth
    return np.median(_windows(depth, size), axis=(-2, -1)).astype(np.float32)


def _fill_holes(depth: np.ndarray) -> np.ndarray:
    holes = depth <= 0
    if not holes.any():
        return depth
    window = _windows(np.where(holes, 0.0, depth), 3)
    valid = window > 0
    counts = valid.sum(axis=(-2, -1))
    sums = np.where(valid, window, 0.0).sum(axis=(-2, -1))
    filled = depth.copy()
    mask = holes & (counts > 0)
    filled[mask] = sums[mask] / counts[mask]
    return filled


def _colorize(depth: np.ndarray, scale: float, depth_range: tuple[float, float]) -> np.ndarray:
    near, far = depth_range
    z = depth * scale
    span = far - near
    valid = (depth > 0) & (z >= near) & (z <= far)
    t = np.clip((z - near) / span, 0.0, 1.0) if span > 0 else np.zeros_like(z)
    channels = [np.clip(1.5 - np.abs(4.0 * t - centre), 0.0, 1.0) for centre in (3.0, 2.0, 1.0)]
    image = (np.stack(channels, axis=-1) * 255).astype(np.uint8)
    image[~valid] = 0
    return image


def _deproject(u: int, v: int, d: float, scale: float, intr: Intrinsics):
    z = float(d) * scale
    x = (u - intr.cx) * z / intr.fx if intr.fx else 0.0
    y = (v - intr.cy) * z / intr.fy if intr.fy else 0.0
    return (float(x), float(y), z)


def _gray(data: bytes, offset: int, width: int, height: int) -> np.ndarray:
    pixels = np.frombuffer(data, dtype=np.uint8, count=width * height, offset=offset)
    return pixels.reshape(height, width).copy()


class DepthProcessStrategy(ProcessStrategy):
    """Filters depth, colourises it and splits out the left and right IR images."""

    def __init__(self, strategy_type: StrategyType = StrategyType.DEPTH) -> None:
        super().__init__(strategy_type)
        self.calc_depth_coord = False
        self.depth_coord_calc_pos: tuple[float, float] = (-1.0, -1.0)
        self.fill_hole = False
        self.filter_value = 0
        self.filter_type = FilterType.NONE
        self.trigger = TriggerMode.OFF
        self.depth_range: tuple[float, float] = (0.0, 65535.0)
        self.depth_scale = 1.0
        self.depth_intrinsics = Intrinsics()
        self._filter_cache: deque[np.ndarray] = deque()
        self.dependent_parameters.extend(
            [
                CameraParameter.DEPTH_RANGE,
                CameraParameter.DEPTH_SCALE,
                CameraParameter.DEPTH_INTRINSICS,
                CameraParameter.DEPTH_FILL_HOLE,
                CameraParameter.DEPTH_FILTER_TYPE,
                CameraParameter.DEPTH_FILTER,
                CameraParameter.TRIGGER_MODE,
            ]
        )

    def do_process(self, frame_data: FrameData, output_port: OutputDataPort) -> None:
        # A single-trigger frame must not be averaged with stale cached frames.
        if self.trigger != TriggerMode.OFF and self.filter_type == FilterType.TDSMOOTH:
            self._filter_cache.clear()

        handlers = {
            StreamFormat.Z16: self._process_z16,
            StreamFormat.Z16Y8Y8: self._process_z16y8y8,
            StreamFormat.PAIR: self._process_pair,
        }
        for stream in frame_data.data:
            handler = handlers.get(stream.format)
            if handler is None:
                continue
            outputs = handler(stream)
            if outputs:
                output_port.extend_output_2d(outputs)

    def process_depth(self, data, width: int, height: int) -> OutputData2D:
        """Filter and colourise one depth buffer; empty output while smoothing fills up."""
        filtered = self._filter_depth(_as_depth(data, width, height), width, height)
        if filtered is None:
            return OutputData2D()

        output = OutputData2D(
            image=_colorize(filtered, self.depth_scale, self.depth_range),
            data_type=CameraDataType.DEPTH,
        )
        if self.calc_depth_coord:
            x = int(self.depth_coord_calc_pos[0] * width)
            y = int(self.depth_coord_calc_pos[1] * height)
            if 0 <= x < width and 0 <= y < height:
                output.vertex = _deproject(
                    x, y, filtered[y, x], self.depth_scale, self.depth_intrinsics
                )
                output.depth_scale = self.depth_scale
        return output

    def _filter_depth(self, depth: np.ndarray, width: int, height: int) -> np.ndarray | None:
        if self.fill_hole:
            depth = _fill_holes(depth)
        if self.filter_type == FilterType.SMOOTH:
            depth = _average_blur(depth, self.filter_value)
        elif self.filter_type == FilterType.MEDIAN:
            depth = _median_blur(depth, self.filter_value)
        elif self.filter_type == FilterType.TDSMOOTH:
            return self.time_domain_smooth(depth, width, height)
        return depth

    def time_domain_smooth(self, depth, width: int, height: int) -> np.ndarray | None:
        """Average positive samples over the last ``filter_value`` frames.

        Returns None until enough frames have been collected.
        """
        size = width * height
        while self._filter_cache and len(self._filter_cache) >= self.filter_value:
            self._filter_cache.popleft()
        self._filter_cache.append(np.array(depth, dtype=np.float32).reshape(-1))

        if len(self._filter_cache) < self.filter_value:
            return None

        frames = np.stack([frame for frame in self._filter_cache if frame.size == size])
        positive = frames > 0
        counts = positive.sum(axis=0)
        sums = np.where(positive, frames, 0.0).sum(axis=0)
        result = np.zeros(size, dtype=np.float32)
        np.divide(sums, counts, out=result, where=counts > 0)

        if self.trigger == TriggerMode.SOFTWARE and len(self._filter_cache) >= self.filter_value:
            self._filter_cache.clear()
        return result.reshape(height, width)

    def load_camera_parameters(self):
        values = super().load_camera_parameters()
        for para in self.dependent_parameters:
            value = values.get(para)
            if para == CameraParameter.DEPTH_RANGE:
                near, far = value
                self.depth_range = (float(near), float(far))
            elif para == CameraParameter.DEPTH_SCALE:
                self.depth_scale = float(value)
            elif para == CameraParameter.DEPTH_INTRINSICS:
                self.depth_intrinsics = value
            elif para == CameraParameter.DEPTH_FILL_HOLE:
                self.fill_hole = bool(value)
            elif para == CameraParameter.DEPTH_FILTER:
                self.filter_value = int(value)
            elif para == CameraParameter.DEPTH_FILTER_TYPE:
                self.filter_type = FilterType(int(value))
                if self.filter_type != FilterType.TDSMOOTH:
                    log.info("Clear filter cached data")
                    self._filter_cache.clear()
            elif para == CameraParameter.TRIGGER_MODE:
                trigger = TriggerMode(int(value))
                if self.filter_type == FilterType.TDSMOOTH and self.trigger != trigger:
                    log.info("Clear filter cached data")
                    self._filter_cache.clear()
                self.trigger = trigger

        if abs(self.depth_scale) < _MIN_DEPTH_SCALE:
            log.warning("invalid depth scale, depthScale = %s", self.depth_scale)
        return values

    def _ir_output(self, data: bytes, offset: int, width: int, height: int,
                   data_type: CameraDataType) -> OutputData2D:
        output = OutputData2D(image=_gray(data, offset, width, height), data_type=data_type)
        self.emit_output_2d(output)
        return output

    def _process_z16(self, stream: StreamData) -> list[OutputData2D]:
        width, height = stream.width, stream.height
        data = bytes(stream.data)
        if len(data) != width * height * 2:
            raise ValueError(f"Z16 frame of {width}x{height} has {len(data)} bytes")
        output = self.process_depth(data, width, height)
        if output.is_empty():
            return []
        self.emit_output_2d(output)
        return [output]

    def _process_z16y8y8(self, stream: StreamData) -> list[OutputData2D]:
        width, height = stream.width, stream.height
        pixels = width * height
        data = bytes(stream.data)
        if len(data) != pixels * 4:
            raise ValueError(f"Z16Y8Y8 frame of {width}x{height} has {len(data)} bytes")
        outputs = []
        depth = self.process_depth(data[: pixels * 2], width, height)
        if not depth.is_empty():
            outputs.append(depth)
            self.emit_output_2d(depth)
        outputs.append(self._ir_output(data, pixels * 2, width, height, CameraDataType.L))
        outputs.append(self._ir_output(data, pixels * 3, width, height, CameraDataType.R))
        return outputs

    def _process_pair(self, stream: StreamData) -> list[OutputData2D]:
        width, height = stream.width, stream.height
        pixels = width * height
        data = bytes(stream.data)
        if len(data) != pixels * 2:
            raise ValueError(f"PAIR frame of {width}x{height} has {len(data)} bytes")
        return [
            self._ir_output(data, 0, width, height, CameraDataType.L),
            self._ir_output(data, pixels, width, height, CameraDataType.R),
        ]