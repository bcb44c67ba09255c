"""Parser for WitMotion WT901BLE / BT50 style 0x55 0x61 acceleration frames.

A notification payload carries one or more frames concatenated back to back.
Each frame is 20 bytes::

    0x55 0x61 | ax ay az (int16 LE) | wx wy wz (int16 LE) | roll pitch yaw (int16 LE)

Acceleration is scaled with the sensor's +/-16 g range, so raw values map to
``raw / 32768 * 16`` g.
"""

from __future__ import annotations

import struct
from typing import List, Tuple

FRAME_HEADER = b"\x55\x61"
FRAME_LENGTH = 20
ACCEL_RANGE_G = 16.0
STANDARD_GRAVITY = 9.80665

_ACCEL = struct.Struct("<hhh")


def parse_5561(payload: bytes, range_g: float = ACCEL_RANGE_G) -> List[Tuple[float, float, float]]:
    """Scan ``payload`` for 0x55 0x61 frames and return acceleration triples in g.

    Bytes that do not start a frame are skipped one at a time so a payload
    that begins mid-frame resynchronises on the next header. A trailing
    partial frame is dropped.
    """
    if not payload:
        return []

    scale = range_g / 32768.0
    samples: List[Tuple[float, float, float]] = []
    i = 0
    end = len(payload)

    while i + FRAME_LENGTH <= end:
        if payload[i:i + 2] == FRAME_HEADER:
            ax, ay, az = _ACCEL.unpack_from(payload, i + 2)
            samples.append((ax * scale, ay * scale, az * scale))
            i += FRAME_LENGTH
        else:
            i += 1

    return samples


def g_to_ms2(values: Tuple[float, float, float]) -> Tuple[float, float, float]:
    """Convert an acceleration triple from g to m/s^2."""
    return tuple(v * STANDARD_GRAVITY for v in values)
