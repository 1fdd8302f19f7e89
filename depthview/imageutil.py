"""Reading and writing PNG images, including 16-bit grayscale depth maps."""

from __future__ import annotations

import os
import struct
import zlib
from dataclasses import dataclass

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_CHANNELS = {0: 1, 2: 3, 3: 1, 4: 2, 6: 4}


@dataclass(frozen=True)
class PngPixels:
    """Decoded PNG pixel rows; 16-bit samples are little-endian."""

    width: int
    height: int
    bit_depth: int
    data: bytes


def _swap16(buf: bytes) -> bytes:
    out = bytearray(buf)
    out[0::2], out[1::2] = buf[1::2], buf[0::2]
    return bytes(out)


def _chunk(kind: bytes, body: bytes) -> bytes:
    return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))


def save_gray16_png(width: int, height: int, data: bytes, path: str | os.PathLike) -> None:
    """Write little-endian 16-bit samples as a grayscale PNG."""
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid image size {width}x{height}")
    row_size = width * 2
    raw = bytes(data)
    if len(raw) < row_size * height:
        raise ValueError(f"need {row_size * height} bytes of pixel data, got {len(raw)}")
    big_endian = _swap16(raw[: row_size * height])
    scanlines = b"".join(
        b"\x00" + big_endian[offset : offset + row_size]
        for offset in range(0, row_size * height, row_size)
    )
    header = struct.pack(">IIBBBBB", width, height, 16, 0, 0, 0, 0)
    png = (
        PNG_SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", zlib.compress(scanlines))
        + _chunk(b"IEND", b"")
    )
    with open(path, "wb") as fp:
        fp.write(png)


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    return b if pb <= pc else c


def _unfilter(ftype: int, row: bytearray, prev: bytes, stride: int) -> None:
    if ftype == 0:
        return
    if ftype == 2:
        row[:] = bytes((x + up) & 0xFF for x, up in zip(row, prev))
        return
    if ftype not in (1, 3, 4):
        raise ValueError(f"unknown PNG filter type {ftype}")
    for i in range(len(row)):
        left = row[i - stride] if i >= stride else 0
        if ftype == 1:
            pred = left
        elif ftype == 3:
            pred = (left + prev[i]) // 2
        else:
            pred = _paeth(left, prev[i], prev[i - stride] if i >= stride else 0)
        row[i] = (row[i] + pred) & 0xFF


def _read_chunks(data: bytes):
    pos = len(PNG_SIGNATURE)
    while True:
        if pos + 8 > len(data):
            raise ValueError("truncated PNG data")
        length, kind = struct.unpack(">I4s", data[pos : pos + 8])
        body = data[pos + 8 : pos + 8 + length]
        crc = data[pos + 8 + length : pos + 12 + length]
        if len(body) != length or len(crc) != 4:
            raise ValueError("truncated PNG data")
        if zlib.crc32(kind + body) != struct.unpack(">I", crc)[0]:
            raise ValueError(f"CRC error in {kind.decode('latin-1')} chunk")
        pos += 12 + length
        yield kind, body
        if kind == b"IEND":
            return


def decode_png(png_data: bytes) -> PngPixels:
    """Decode a non-interlaced PNG into its raw rows, without colour expansion."""
    data = bytes(png_data)
    if data[:8] != PNG_SIGNATURE:
        raise ValueError("not a png file")

    header = None
    idat = []
    for kind, body in _read_chunks(data):
        if kind == b"IHDR":
            header = body
        elif kind == b"IDAT":
            idat.append(body)
    if header is None or len(header) != 13:
        raise ValueError("missing or malformed IHDR chunk")

    width, height, bit_depth, color_type, _, _, interlace = struct.unpack(">IIBBBBB", header)
    if interlace != 0:
        raise ValueError("interlaced PNG images are not supported")
    if color_type not in _CHANNELS:
        raise ValueError(f"unknown PNG color type {color_type}")

    bits_per_pixel = _CHANNELS[color_type] * bit_depth
    row_bytes = (width * bits_per_pixel + 7) // 8
    stride = max(1, bits_per_pixel // 8)
    try:
        raw = zlib.decompress(b"".join(idat))
    except zlib.error as exc:
        raise ValueError(f"corrupt PNG image data: {exc}") from exc
    if len(raw) < height * (row_bytes + 1):
        raise ValueError("PNG image data is too short")

    rows = []
    prev = bytes(row_bytes)
    for start in range(0, height * (row_bytes + 1), row_bytes + 1):
        row = bytearray(raw[start + 1 : start + 1 + row_bytes])
        _unfilter(raw[start], row, prev, stride)
        rows.append(bytes(row))
        prev = rows[-1]

    pixels = b"".join(rows)
    if bit_depth == 16:
        pixels = _swap16(pixels)
    return PngPixels(width=width, height=height, bit_depth=bit_depth, data=pixels)