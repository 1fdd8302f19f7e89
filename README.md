# depthview

`depthview` is a library for working with frames from a depth camera. It
turns them into images you can look at, writes captures to disk and serves
frames to WebSocket clients. The camera itself is supplied by you: any object
with a `get_parameter(para_id)` method works as a parameter source.

## What is in it

- **`depthview.frames`**: the data model. It has the enums `StreamFormat`,
  `CameraDataType`, `CameraParameter`, `TriggerMode` and `FilterType`, and the
  dataclasses `Intrinsics`, `StreamData`, `FrameData`, `OutputData2D` and
  `CaptureConfig`. It also defines the `CameraParameterSource` protocol and
  `OutputDataPort`, which collects the 2D outputs and point cloud produced
  from one frame.
- **`depthview.strategy`**: `ProcessStrategy` is the abstract base for
  per-frame processing. It reloads its dependent camera parameters when
  `set_camera_para_state` marks them stale. It passes 2D outputs to callbacks
  registered with `subscribe_2d`.
- **`depthview.processor`**: `Processor` runs the enabled strategies in order.
  It then hands the `OutputDataPort` to each `ProcessEndListener`.
- **`depthview.processthread`**: `ProcessThread` is a background thread
  feeding a processor. It keeps at most `max_cached` frames waiting (default 5)
  and drops the oldest when full. It starts on the first `on_frame_data` call.
  `stop()` (or leaving a `with` block) ends it.
- **`depthview.depthstrategy`**: `DepthProcessStrategy` reads 16-bit depth
  (`Z16`, `Z16Y8Y8`) as float. It can fill holes and apply one of three
  filters: an average blur, a median blur, or time-domain smoothing over the
  last `filter_value` frames. It then colourises the depth into an RGB array.
  With `calc_depth_coord` set, it deprojects the pixel at
  `depth_coord_calc_pos` into `OutputData2D.vertex`. Left and right infrared
  images are split out of `Z16Y8Y8` and `PAIR` streams.
- **`depthview.rgbstrategy`**: `RgbProcessStrategy` decodes `RGB8` and `MJPG`
  streams into `(height, width, 3)` uint8 arrays.
- **`depthview.outputsaver`**: savers that write one frame to disk.
  - `ImageOutputSaver` writes PNG files, with depth as 16-bit grayscale.
  - `RawOutputSaver` writes the raw stream bytes.
  - Both write an ASCII PLY point cloud when `CameraDataType.POINT_CLOUD` is
    selected. Points come from the port's point cloud or from the depth
    stream. They carry colour when `save_point_cloud_with_texture` is set and
    a colour stream is present.
  - Files go to `<save_dir>/<save_name>-depth-0001.png`, `-RGB-0001`,
    `-ir-L-0001`, `-ir-R-0001` and `<save_name>-0001.ply`. The numbers come
    from `set_save_index`; a negative index leaves the number out.
- **`depthview.imageutil`**: `save_gray16_png` writes little-endian 16-bit
  samples as a grayscale PNG. `decode_png` decodes a non-interlaced PNG into
  a `PngPixels` with its raw rows, and 16-bit samples come back little-endian.
- **`depthview.appconfig`**: `AppConfig` keeps `language`, `default_save_path`
  and `auto_name_when_capturing` in an INI file and saves on every change.
  The default file is `default_config_path()`, which is
  `~/DepthViewer/config.ini`.
- **`depthview.logger`**: `DailyFileLogHandler` prints each record and
  appends it to `<root>/<prefix>.<yyyymmdd>.log`. It deletes that prefix's
  logs dated more than a week back. `install_logger` attaches one to the root
  logger.
- **`depthview.pipeline`**: `ProcessingPipeline` builds a depth strategy for
  the camera, plus an RGB strategy when the camera reports
  `CameraParameter.HAS_RGB`. It adds them to its `Processor` and forwards
  their 2D outputs to subscribers.
- **`depthview.server`**: `CommandServer` is a WebSocket server that drives
  a `CameraController` and sends frames as PNG.

## Using the pipeline

```python
from depthview.frames import CameraDataType, FrameData
from depthview.pipeline import ProcessingPipeline

pipeline = ProcessingPipeline(camera)   # camera provides get_parameter(para_id)
pipeline.update_strategies()            # call once the camera is connected
pipeline.subscribe_2d(lambda output: print(output.data_type, output.image.shape))
pipeline.on_window_layout_changed([CameraDataType.DEPTH, CameraDataType.RGB])

port = pipeline.processor.process(frame_data)   # frame_data is a FrameData
```

When a camera parameter changes, call `pipeline.on_camera_para_updated(para_id)`.
The strategies that depend on it reload their parameters before the next frame.

## Saving a capture

```python
from depthview.frames import CameraDataType, CaptureConfig
from depthview.outputsaver import ImageOutputSaver

config = CaptureConfig(
    capture_data_types=[CameraDataType.DEPTH, CameraDataType.RGB, CameraDataType.POINT_CLOUD],
    save_dir="/tmp/captures",
    save_name="scan",
)
saver = ImageOutputSaver(config, port)
saver.set_save_index(1, 1, 1)
saver.run()      # scan-RGB-0001.png, scan-depth-0001.png, scan-0001.ply
```

## The WebSocket protocol

`CommandServer.serve(host, port)` starts listening and returns the running
server. Each text message is read by its first character:

| Message       | Effect                                                    |
|---------------|-----------------------------------------------------------|
| `C<serial>`   | connect to the camera with that serial                    |
| `D`           | disconnect the current camera                             |
| `L`           | reply with the known cameras as a JSON array              |
| `S`           | subscribe: every new 2D frame is sent as a PNG            |
| `U`           | unsubscribe                                               |
| `G`           | reply once with the most recent frame as a PNG            |
| anything else | echoed back unchanged                                     |

```python
import asyncio
from depthview.server import CommandServer

async def main():
    server = CommandServer(controller)      # controller is a CameraController
    running = await server.serve("0.0.0.0", 8765)
    try:
        await asyncio.Future()              # serve until cancelled
    finally:
        running.close()

asyncio.run(main())
```

Call `server.on_camera_list_updated(...)` when the camera list changes. Await
`server.on_output_2d(output)` for each processed frame; it caches the image
and sends it to subscribers.

## Settings and logging

```python
from depthview.appconfig import AppConfig, default_config_path
from depthview.logger import install_logger

config = AppConfig(default_config_path("depthview"))
config.language = "en"                  # written to the file at once

install_logger("/tmp/depthview-logs", "depthview")
```

## What it does not do

- It has no camera driver. It does not find, connect to or stream from a
  device; the `CameraController` and `CameraParameterSource` you pass in do
  that.
- The pipeline has no point-cloud strategy. Point clouds are produced only
  when a saver writes a PLY file from the depth stream.
- There is no capture loop that numbers and saves frames over time, no
  recorded-capture player, no graphical viewer and no command-line program.