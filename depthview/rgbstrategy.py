"""Strategy turning colour streams into RGB images."""

from __future__ import annotations

import io
import logging

import numpy as np
from PIL import Image

from depthview.frames import (
    CameraDataType,
    FrameData,
    OutputData2D,
    OutputDataPort,
    StreamData,
    StreamFormat,
)
from depthview.strategy import ProcessStrategy, StrategyType

log = logging.getLogger(__name__)


class RgbProcessStrategy(ProcessStrategy):
    """Decodes RGB8 and MJPG streams into ``(height, width, 3)`` uint8 arrays."""

    def __init__(self) -> None:
        super().__init__(StrategyType.RGB)

    def do_process(self, frame_data: FrameData, output_port: OutputDataPort) -> None:
        for stream in frame_data.data:
            if stream.format == StreamFormat.RGB8:
                output = self._process_rgb8(stream)
            elif stream.format == StreamFormat.MJPG:
                output = self._process_mjpg(stream)
            else:
                continue
            if output.data_type != CameraDataType.UNKNOWN:
                output_port.add_output_2d(output)

    def _process_rgb8(self, stream: StreamData) -> OutputData2D:
        count = stream.width * stream.height * 3
        pixels = np.frombuffer(bytes(stream.data), dtype=np.uint8, count=count)
        image = pixels.reshape(stream.height, stream.width, 3).copy()
        output = OutputData2D(image=image, data_type=CameraDataType.RGB)
        self.emit_output_2d(output)
        return output

    def _process_mjpg(self, stream: StreamData) -> OutputData2D:
        try:
            with Image.open(io.BytesIO(bytes(stream.data))) as picture:
                image = np.asarray(picture.convert("RGB")).copy()
        except (OSError, ValueError) as exc:
            log.warning("failed to decode MJPG frame: %s", exc)
            image = None
        output = OutputData2D(image=image, data_type=CameraDataType.RGB)
        self.emit_output_2d(output)
        return output