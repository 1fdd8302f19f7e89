"""Frame, stream and processed-output data types shared by the processing pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable


class StreamFormat(IntEnum):
    """Pixel layout of a raw camera stream."""

    Z16 = 0
    Z16Y8Y8 = 1
    PAIR = 2
    RGB8 = 3
    MJPG = 4
    XZ32 = 5


class CameraDataType(IntEnum):
    """Kind of data a processed output carries."""

    UNKNOWN = -1
    L = 0
    R = 1
    DEPTH = 2
    RGB = 3
    POINT_CLOUD = 4


class CameraParameter(IntEnum):
    """Camera parameters that processing depends on."""

    HAS_RGB = 0
    HAS_DEPTH = 1
    DEPTH_HAS_IR = 2
    DEPTH_RANGE = 3
    DEPTH_SCALE = 4
    DEPTH_INTRINSICS = 5
    DEPTH_FILL_HOLE = 6
    DEPTH_FILTER_TYPE = 7
    DEPTH_FILTER = 8
    TRIGGER_MODE = 9
    RGB_INTRINSICS = 10
    EXTRINSICS = 11


class TriggerMode(IntEnum):
    """Camera trigger mode."""

    OFF = 0
    SOFTWARE = 1
    HARDWARE = 2


class FilterType(IntEnum):
    """Depth filter applied before output is produced."""

    NONE = 0
    SMOOTH = 1
    MEDIAN = 2
    TDSMOOTH = 3


@dataclass(frozen=True)
class Intrinsics:
    """Pinhole camera intrinsics."""

    width: int = 0
    height: int = 0
    fx: float = 0.0
    fy: float = 0.0
    cx: float = 0.0
    cy: float = 0.0


@dataclass
class StreamData:
    """One raw stream buffer of a frame."""

    format: StreamFormat
    width: int
    height: int
    data: bytes = b""


@dataclass
class FrameData:
    """All stream buffers captured together, with the calibration they need."""

    data: list[StreamData] = field(default_factory=list)
    depth_scale: float = 1.0
    depth_intrinsics: Intrinsics = field(default_factory=Intrinsics)
    rgb_intrinsics: Intrinsics = field(default_factory=Intrinsics)
    extrinsics: Any = None


@dataclass
class OutputData2D:
    """A processed 2D image together with what it shows."""

    image: Any = None
    data_type: CameraDataType = CameraDataType.UNKNOWN
    vertex: tuple[float, float, float] | None = None
    depth_scale: float = 0.0

    def is_empty(self) -> bool:
        """True when no image was produced."""
        return self.image is None


@dataclass
class CaptureConfig:
    """Settings for capturing frames to disk."""

    capture_number: int = 1
    capture_data_types: list[CameraDataType] = field(default_factory=list)
    save_format: str = "images"
    capture_type: int = 0
    save_dir: str = ""
    save_name: str = ""
    save_point_cloud_with_texture: bool = False


@runtime_checkable
class CameraParameterSource(Protocol):
    """Anything that can report camera parameter values."""

    def get_parameter(self, para_id: CameraParameter) -> Any:
        """Return the current value of a camera parameter."""
        ...


class OutputDataPort:
    """Collects the outputs produced for a single frame."""

    def __init__(self, frame_data: FrameData | None = None) -> None:
        self.frame_data = frame_data if frame_data is not None else FrameData()
        self.point_cloud: Any = None
        self._outputs: dict[CameraDataType, OutputData2D] = {}

    def is_empty(self) -> bool:
        """True when there is neither a point cloud nor any 2D output."""
        return not self.has_data(CameraDataType.POINT_CLOUD) and not self._outputs

    def has_data(self, data_type: CameraDataType) -> bool:
        """Whether output of the given type is present."""
        if data_type == CameraDataType.POINT_CLOUD:
            return self.point_cloud is not None and len(self.point_cloud) > 0
        return data_type in self._outputs

    def output_2d(self, data_type: CameraDataType) -> OutputData2D:
        """The 2D output of a type, or an empty output when there is none."""
        return self._outputs.get(data_type, OutputData2D())

    def outputs_2d(self) -> dict[CameraDataType, OutputData2D]:
        """A copy of all 2D outputs, ordered by data type."""
        return dict(sorted(self._outputs.items()))

    def add_output_2d(self, output: OutputData2D) -> None:
        """Store an output, replacing any earlier one of the same type."""
        self._outputs[output.data_type] = output

    def extend_output_2d(self, outputs) -> None:
        """Store several outputs in order."""
        for output in outputs:
            self.add_output_2d(output)

    def copy(self) -> OutputDataPort:
        """A new port holding the same outputs, point cloud and frame."""
        other = OutputDataPort(self.frame_data)
        other.point_cloud = self.point_cloud
        other._outputs = dict(self._outputs)
        return other