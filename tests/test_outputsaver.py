import numpy as np
import pytest
from PIL import Image

from depthview.frames import (
    CameraDataType,
    CaptureConfig,
    FrameData,
    Intrinsics,
    OutputData2D,
    OutputDataPort,
    StreamData,
    StreamFormat,
)
from depthview.imageutil import decode_png
from depthview.outputsaver import ImageOutputSaver, RawOutputSaver

W, H = 4, 3


def _config(tmp_path, types):
    return CaptureConfig(capture_data_types=list(types), save_dir=str(tmp_path), save_name="cap")


def _depth_bytes():
    values = np.arange(W * H, dtype="<u2") * 100
    values[0] = 0
    return values.tobytes()


def _ir_bytes():
    return bytes(range(10, 10 + W * H)) + bytes(range(100, 100 + W * H))


def _z16y8y8():
    return StreamData(StreamFormat.Z16Y8Y8, W, H, _depth_bytes() + _ir_bytes())


def _rgb():
    return StreamData(StreamFormat.RGB8, W, H, bytes(range(W * H * 3)))


def test_save_path_without_index(tmp_path):
    saver = ImageOutputSaver(_config(tmp_path, []), OutputDataPort())
    assert saver.save_path(CameraDataType.RGB) == f"{tmp_path}/cap-RGB.png"
    assert saver.save_path(CameraDataType.POINT_CLOUD) == f"{tmp_path}/cap.ply"
    assert saver.save_path(CameraDataType.L) == f"{tmp_path}/cap-ir-L.png"


def test_save_path_with_index(tmp_path):
    saver = RawOutputSaver(_config(tmp_path, []), OutputDataPort())
    saver.set_save_index(7, 12, 3)
    assert saver.save_path(CameraDataType.RGB) == f"{tmp_path}/cap-RGB-0007.raw"
    assert saver.save_path(CameraDataType.DEPTH) == f"{tmp_path}/cap-depth-0012.raw"
    assert saver.save_path(CameraDataType.R) == f"{tmp_path}/cap-ir-R-0012.raw"
    assert saver.save_path(CameraDataType.POINT_CLOUD) == f"{tmp_path}/cap-0003.ply"


def test_update_config_changes_path(tmp_path):
    saver = RawOutputSaver(_config(tmp_path, []), OutputDataPort())
    other = CaptureConfig(save_dir=str(tmp_path), save_name="other")
    saver.update_config(other)
    assert saver.save_path(CameraDataType.DEPTH).endswith("/other-depth.raw")


def test_raw_depth_and_ir(tmp_path):
    port = OutputDataPort(FrameData(data=[_z16y8y8()]))
    types = [CameraDataType.DEPTH, CameraDataType.L, CameraDataType.R]
    saver = RawOutputSaver(_config(tmp_path, types), port)
    saver.run()
    assert (tmp_path / "cap-depth.raw").read_bytes() == _depth_bytes()
    ir = _ir_bytes()
    assert (tmp_path / "cap-ir-L.raw").read_bytes() == ir[: W * H]
    assert (tmp_path / "cap-ir-R.raw").read_bytes() == ir[W * H :]


def test_raw_pair_and_rgb(tmp_path):
    pair = StreamData(StreamFormat.PAIR, W, H, _ir_bytes())
    port = OutputDataPort(FrameData(data=[pair, _rgb()]))
    types = [CameraDataType.RGB, CameraDataType.L]
    RawOutputSaver(_config(tmp_path, types), port).run()
    assert (tmp_path / "cap-ir-R.raw").read_bytes() == _ir_bytes()[W * H :]
    assert (tmp_path / "cap-RGB.raw").read_bytes() == _rgb().data


def test_image_depth_round_trip(tmp_path):
    port = OutputDataPort(FrameData(data=[_z16y8y8()]))
    ImageOutputSaver(_config(tmp_path, [CameraDataType.DEPTH]), port).run()
    pixels = decode_png((tmp_path / "cap-depth.png").read_bytes())
    assert (pixels.width, pixels.height, pixels.bit_depth) == (W, H, 16)
    assert pixels.data == _depth_bytes()


def test_image_rgb_from_stream(tmp_path):
    port = OutputDataPort(FrameData(data=[_rgb()]))
    ImageOutputSaver(_config(tmp_path, [CameraDataType.RGB]), port).run()
    with Image.open(tmp_path / "cap-RGB.png") as picture:
        saved = np.asarray(picture.convert("RGB"))
    expected = np.frombuffer(_rgb().data, dtype=np.uint8).reshape(H, W, 3)
    assert np.array_equal(saved, expected)


def test_image_ir_prefers_port_output(tmp_path):
    port = OutputDataPort(FrameData(data=[_z16y8y8()]))
    custom = np.full((H, W), 200, dtype=np.uint8)
    port.add_output_2d(OutputData2D(image=custom, data_type=CameraDataType.L))
    ImageOutputSaver(_config(tmp_path, [CameraDataType.L]), port).run()
    with Image.open(tmp_path / "cap-ir-L.png") as picture:
        left = np.asarray(picture)
    with Image.open(tmp_path / "cap-ir-R.png") as picture:
        right = np.asarray(picture)
    assert np.array_equal(left, custom)
    expected_r = np.frombuffer(_ir_bytes()[W * H :], dtype=np.uint8).reshape(H, W)
    assert np.array_equal(right, expected_r)


def test_unselected_types_write_nothing(tmp_path):
    port = OutputDataPort(FrameData(data=[_z16y8y8(), _rgb()]))
    RawOutputSaver(_config(tmp_path, [CameraDataType.RGB]), port).run()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["cap-RGB.raw"]


def test_run_reports_completion(tmp_path):
    finished = []
    saver = RawOutputSaver(_config(tmp_path, []), OutputDataPort(), finished.append)
    saver.run()
    assert finished == [saver]


def test_point_cloud_from_depth(tmp_path):
    frame = FrameData(
        data=[_z16y8y8()],
        depth_scale=1.0,
        depth_intrinsics=Intrinsics(W, H, 1.0, 1.0, 0.0, 0.0),
    )
    port = OutputDataPort(frame)
    port.add_output_2d(OutputData2D(image=np.zeros((H, W, 3), np.uint8),
                                    data_type=CameraDataType.DEPTH))
    RawOutputSaver(_config(tmp_path, [CameraDataType.POINT_CLOUD]), port).run()
    lines = (tmp_path / "cap.ply").read_text().splitlines()
    assert lines[0] == "ply"
    end = lines.index("end_header")
    assert f"element vertex {W * H - 1}" in lines
    assert len(lines) - end - 1 == W * H - 1


def test_point_cloud_from_port_with_texture(tmp_path):
    frame = FrameData(data=[_rgb()])
    port = OutputDataPort(frame)
    port.point_cloud = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], dtype=np.float32)
    config = _config(tmp_path, [CameraDataType.POINT_CLOUD])
    config.save_point_cloud_with_texture = True
    RawOutputSaver(config, port).run()
    lines = (tmp_path / "cap.ply").read_text().splitlines()
    assert lines[-2:] == ["1 2 3", "4 5 6"]


def test_point_cloud_skipped_without_depth(tmp_path):
    port = OutputDataPort(FrameData(data=[_rgb()]))
    RawOutputSaver(_config(tmp_path, [CameraDataType.POINT_CLOUD]), port).run()
    assert list(tmp_path.iterdir()) == []


def test_bad_directory_does_not_raise_and_writes_nothing(tmp_path):
    config = CaptureConfig(capture_data_types=[CameraDataType.RGB],
                           save_dir=str(tmp_path / "missing"), save_name="cap")
    port = OutputDataPort(FrameData(data=[_rgb()]))
    RawOutputSaver(config, port).run()
    assert not (tmp_path / "missing").exists()


def test_base_class_is_abstract(tmp_path):
    from depthview.outputsaver import OutputSaver

    with pytest.raises(TypeError):
        OutputSaver(_config(tmp_path, []), OutputDataPort())