"""Writing captured frames to disk as images, raw buffers and PLY point clouds."""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

import numpy as np
from PIL import Image

from depthview.frames import (
    CameraDataType,
    CaptureConfig,
    FrameData,
    OutputDataPort,
    StreamData,
    StreamFormat,
)
from depthview.imageutil import save_gray16_png

log = logging.getLogger(__name__)

_DEPTH_FORMATS = (StreamFormat.Z16, StreamFormat.Z16Y8Y8)
_RGB_FORMATS = (StreamFormat.RGB8, StreamFormat.MJPG)
_IR_FORMATS = (StreamFormat.Z16Y8Y8, StreamFormat.PAIR)
_IR_SIDES = ((CameraDataType.L, 0), (CameraDataType.R, 1))


def _indexed(base: str, index: int) -> str:
    return base if index < 0 else f"{base}-{index:04d}"


def _decode_rgb(stream: StreamData) -> np.ndarray | None:
    """Decode an RGB8 or MJPG stream into an ``(height, width, 3)`` array."""
    if stream.format == StreamFormat.RGB8:
        count = stream.width * stream.height * 3
        pixels = np.frombuffer(bytes(stream.data), dtype=np.uint8, count=count)
        return pixels.reshape(stream.height, stream.width, 3).copy()
    try:
        with Image.open(io.BytesIO(bytes(stream.data))) as picture:
            return np.asarray(picture.convert("RGB")).copy()
    except (OSError, ValueError) as exc:
        log.warning("failed to decode MJPG frame: %s", exc)
        return None


def _ir_offset(stream: StreamData) -> int:
    return len(stream.data) // 2 if stream.format == StreamFormat.Z16Y8Y8 else 0


def _generate_points(stream: StreamData, frame: FrameData):
    """Deproject valid depth pixels; returns points and their pixel coordinates."""
    width, height = stream.width, stream.height
    depth = np.frombuffer(bytes(stream.data), dtype="<u2", count=width * height)
    depth = depth.reshape(height, width).astype(np.float32)
    v, u = np.nonzero(depth > 0)
    z = depth[v, u] * frame.depth_scale
    intr = frame.depth_intrinsics
    x = (u - intr.cx) * z / intr.fx if intr.fx else np.zeros_like(z)
    y = (v - intr.cy) * z / intr.fy if intr.fy else np.zeros_like(z)
    points = np.stack([x, y, z], axis=-1).astype(np.float32)
    return points, u, v


def _write_ply(path: str, points: np.ndarray, colors: np.ndarray | None) -> None:
    points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    header = ["ply", "format ascii 1.0", f"element vertex {len(points)}",
              "property float x", "property float y", "property float z"]
    if colors is not None:
        header += ["property uchar red", "property uchar green", "property uchar blue"]
    header.append("end_header")
    lines = []
    for index, (x, y, z) in enumerate(points):
        line = f"{x:g} {y:g} {z:g}"
        if colors is not None:
            r, g, b = colors[index]
            line += f" {int(r)} {int(g)} {int(b)}"
        lines.append(line)
    with open(path, "w", encoding="ascii") as fp:
        fp.write("\n".join(header + lines) + "\n")


class OutputSaver(ABC):
    """Saves one frame's 2D outputs and point cloud according to a capture config."""

    suffix_2d = ""

    def __init__(
        self,
        config: CaptureConfig,
        output_port: OutputDataPort,
        on_finished: Callable[[OutputSaver], None] | None = None,
    ) -> None:
        self.config = config
        self.output_port = output_port
        self.on_finished = on_finished
        self.rgb_index = -1
        self.depth_index = -1
        self.point_cloud_index = -1

    def update_config(self, config: CaptureConfig) -> None:
        """Replace the capture config."""
        self.config = config

    def set_save_index(self, rgb_index: int, depth_index: int, point_cloud_index: int) -> None:
        """Set the frame numbers put into file names; negative means none."""
        self.rgb_index = rgb_index
        self.depth_index = depth_index
        self.point_cloud_index = point_cloud_index

    def save_path(self, data_type: CameraDataType) -> str:
        """File path for data of the given type."""
        name = self.config.save_name
        if data_type == CameraDataType.L:
            name = _indexed(f"{name}-ir-L", self.depth_index) + self.suffix_2d
        elif data_type == CameraDataType.R:
            name = _indexed(f"{name}-ir-R", self.depth_index) + self.suffix_2d
        elif data_type == CameraDataType.DEPTH:
            name = _indexed(f"{name}-depth", self.depth_index) + self.suffix_2d
        elif data_type == CameraDataType.RGB:
            name = _indexed(f"{name}-RGB", self.rgb_index) + self.suffix_2d
        elif data_type == CameraDataType.POINT_CLOUD:
            name = _indexed(name, self.point_cloud_index) + ".ply"
        return f"{self.config.save_dir}/{name}"

    def run(self) -> None:
        """Save 2D data, then the point cloud, then report completion."""
        for stream in self.output_port.frame_data.data:
            self.save_output_2d(stream)
        self._save_point_cloud()
        if self.on_finished is not None:
            self.on_finished(self)

    def save_output_2d(self, stream: StreamData) -> None:
        """Save whichever selected data types this stream carries."""
        types = self.config.capture_data_types
        if CameraDataType.RGB in types:
            self.save_rgb(stream)
        if CameraDataType.DEPTH in types:
            self.save_depth(stream)
        if CameraDataType.L in types or CameraDataType.R in types:
            self.save_ir(stream)

    @abstractmethod
    def save_rgb(self, stream: StreamData) -> None:
        """Save colour data from the stream."""

    @abstractmethod
    def save_depth(self, stream: StreamData) -> None:
        """Save depth data from the stream."""

    @abstractmethod
    def save_ir(self, stream: StreamData) -> None:
        """Save the left and right infrared data from the stream."""

    def _texture(self, frame: FrameData) -> np.ndarray | None:
        texture = None
        if self.config.save_point_cloud_with_texture:
            for stream in frame.data:
                if stream.format in _RGB_FORMATS:
                    texture = _decode_rgb(stream)
        return texture

    def _save_point_cloud(self) -> None:
        if CameraDataType.POINT_CLOUD not in self.config.capture_data_types:
            return
        port = self.output_port
        if not port.has_data(CameraDataType.POINT_CLOUD) and not port.has_data(
            CameraDataType.DEPTH
        ):
            return

        frame = port.frame_data
        texture = self._texture(frame)
        path = self.save_path(CameraDataType.POINT_CLOUD)

        if port.has_data(CameraDataType.POINT_CLOUD):
            points = np.asarray(port.point_cloud, dtype=np.float32).reshape(-1, 3)
            colors = None
        else:
            points = np.zeros((0, 3), dtype=np.float32)
            colors = None
            for stream in frame.data:
                if stream.format not in _DEPTH_FORMATS:
                    continue
                points, u, v = _generate_points(stream, frame)
                colors = None
                if texture is not None:
                    th, tw = texture.shape[:2]
                    tu = np.clip(u * tw // stream.width, 0, tw - 1)
                    tv = np.clip(v * th // stream.height, 0, th - 1)
                    colors = texture[tv, tu]
        try:
            _write_ply(path, points, colors)
        except OSError as exc:
            log.warning("save point cloud failed: %s (%s)", path, exc)


class ImageOutputSaver(OutputSaver):
    """Saves 2D data as PNG images; depth as 16-bit grayscale."""

    suffix_2d = ".png"

    @staticmethod
    def _save_image(image, path: str) -> None:
        try:
            if image is None:
                raise ValueError("no image")
            Image.fromarray(np.asarray(image)).save(path, "PNG")
        except (OSError, ValueError, TypeError) as exc:
            log.warning("save image failed: %s (%s)", path, exc)

    def save_rgb(self, stream: StreamData) -> None:
        if stream.format not in _RGB_FORMATS:
            return
        path = self.save_path(CameraDataType.RGB)
        if self.output_port.has_data(CameraDataType.RGB):
            image = self.output_port.output_2d(CameraDataType.RGB).image
        else:
            image = _decode_rgb(stream)
        self._save_image(image, path)

    def save_depth(self, stream: StreamData) -> None:
        if stream.format not in _DEPTH_FORMATS:
            return
        path = self.save_path(CameraDataType.DEPTH)
        try:
            save_gray16_png(stream.width, stream.height, stream.data, path)
        except (OSError, ValueError) as exc:
            log.warning("save depth image failed: %s (%s)", path, exc)

    def save_ir(self, stream: StreamData) -> None:
        if stream.format not in _IR_FORMATS:
            return
        offset = _ir_offset(stream)
        width, height = stream.width, stream.height
        data = bytes(stream.data)
        for data_type, side in _IR_SIDES:
            path = self.save_path(data_type)
            if self.output_port.has_data(data_type):
                image = self.output_port.output_2d(data_type).image
            else:
                start = side * width * height + offset
                pixels = np.frombuffer(data, dtype=np.uint8, count=width * height, offset=start)
                image = pixels.reshape(height, width)
            self._save_image(image, path)


class RawOutputSaver(OutputSaver):
    """Saves 2D data as the raw stream bytes."""

    suffix_2d = ".raw"

    @staticmethod
    def _write(path: str, data: bytes) -> None:
        try:
            with open(path, "wb") as fp:
                fp.write(data)
        except OSError as exc:
            log.warning("open file failed, file: %s (%s)", path, exc)

    def save_rgb(self, stream: StreamData) -> None:
        if stream.format in _RGB_FORMATS:
            self._write(self.save_path(CameraDataType.RGB), bytes(stream.data))

    def save_depth(self, stream: StreamData) -> None:
        if stream.format not in _DEPTH_FORMATS:
            return
        data = bytes(stream.data)
        if stream.format == StreamFormat.Z16Y8Y8:
            data = data[: len(data) // 2]
        self._write(self.save_path(CameraDataType.DEPTH), data)

    def save_ir(self, stream: StreamData) -> None:
        if stream.format not in _IR_FORMATS:
            return
        offset = _ir_offset(stream)
        size = stream.width * stream.height
        data = bytes(stream.data)
        for data_type, side in _IR_SIDES:
            start = side * size + offset
            self._write(self.save_path(data_type), data[start : start + size])