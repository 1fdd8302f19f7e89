import io

import numpy as np
import pytest
from PIL import Image

from depthview.frames import (
    CameraDataType,
    FrameData,
    OutputDataPort,
    StreamData,
    StreamFormat,
)
from depthview.rgbstrategy import RgbProcessStrategy
from depthview.strategy import StrategyType


class FakeCamera:
    def get_parameter(self, para_id):
        return None


def _jpeg(width, height, color):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, "JPEG", quality=95)
    return buf.getvalue()


def test_strategy_type_is_rgb():
    assert RgbProcessStrategy().strategy_type == StrategyType.RGB


def test_rgb8_stream_becomes_image():
    raw = bytes(range(2 * 3 * 3))
    frame = FrameData(data=[StreamData(StreamFormat.RGB8, 3, 2, raw)])
    port = OutputDataPort(frame)
    RgbProcessStrategy().do_process(frame, port)
    output = port.output_2d(CameraDataType.RGB)
    assert output.image.shape == (2, 3, 3)
    assert output.image.tobytes() == raw


def test_rgb8_output_is_emitted_to_subscribers():
    strategy = RgbProcessStrategy()
    received = []
    strategy.subscribe_2d(received.append)
    frame = FrameData(data=[StreamData(StreamFormat.RGB8, 1, 1, b"\x01\x02\x03")])
    strategy.do_process(frame, OutputDataPort(frame))
    assert [out.data_type for out in received] == [CameraDataType.RGB]


def test_mjpg_stream_is_decoded():
    frame = FrameData(data=[StreamData(StreamFormat.MJPG, 8, 4, _jpeg(8, 4, (0, 0, 255)))])
    port = OutputDataPort(frame)
    RgbProcessStrategy().do_process(frame, port)
    image = port.output_2d(CameraDataType.RGB).image
    assert image.shape == (4, 8, 3)
    assert image[..., 2].min() > 200
    assert image[..., 0].max() < 60


def test_invalid_mjpg_gives_empty_rgb_output():
    frame = FrameData(data=[StreamData(StreamFormat.MJPG, 2, 2, b"not a jpeg")])
    port = OutputDataPort(frame)
    RgbProcessStrategy().do_process(frame, port)
    assert port.has_data(CameraDataType.RGB)
    assert port.output_2d(CameraDataType.RGB).is_empty()


def test_depth_streams_are_ignored():
    frame = FrameData(data=[StreamData(StreamFormat.Z16, 1, 1, b"\x00\x01")])
    port = OutputDataPort(frame)
    RgbProcessStrategy().do_process(frame, port)
    assert port.is_empty()


def test_process_with_camera_runs_do_process():
    strategy = RgbProcessStrategy()
    strategy.set_camera(FakeCamera())
    frame = FrameData(data=[StreamData(StreamFormat.RGB8, 1, 1, b"\x0a\x0b\x0c")])
    port = OutputDataPort(frame)
    strategy.process(frame, port)
    assert port.output_2d(CameraDataType.RGB).image.tolist() == [[[10, 11, 12]]]


def test_short_rgb8_buffer_raises():
    frame = FrameData(data=[StreamData(StreamFormat.RGB8, 4, 4, b"\x00" * 5)])
    with pytest.raises(ValueError):
        RgbProcessStrategy().do_process(frame, OutputDataPort(frame))


def test_rgb8_image_is_a_copy():
    raw = bytearray(b"\x01\x02\x03")
    frame = FrameData(data=[StreamData(StreamFormat.RGB8, 1, 1, raw)])
    port = OutputDataPort(frame)
    RgbProcessStrategy().do_process(frame, port)
    raw[0] = 99
    assert np.array_equal(port.output_2d(CameraDataType.RGB).image[0, 0], [1, 2, 3])