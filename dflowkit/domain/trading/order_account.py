"""Decoding of the on-chain order account.

Layout, little-endian:

    [0:8]    account discriminator (ignored)
    [8]      u8 status, 0 = open / pending close, 1 = closed
    [9:13]   u32 fill count
    [13:..]  fill count x (u64 qty_in, u64 qty_out)
"""

from __future__ import annotations

import struct

from dflowkit.domain.model.errors import MalformedResponse
from dflowkit.domain.model.types import Fill, OrderSnapshot

DISCRIMINATOR_LENGTH = 8
ORDER_STATUS_OPEN = 0
ORDER_STATUS_CLOSED = 1

_HEADER = struct.Struct("<BI")
_FILL = struct.Struct("<QQ")


def decode_order_account(data: bytes) -> OrderSnapshot:
    offset = DISCRIMINATOR_LENGTH
    if len(data) < offset + _HEADER.size:
        raise MalformedResponse(f"order account data too short: {len(data)} bytes")

    raw_status, fill_count = _HEADER.unpack_from(data, offset)
    offset += _HEADER.size
    if raw_status == ORDER_STATUS_OPEN:
        status = "PENDING_CLOSE"
    elif raw_status == ORDER_STATUS_CLOSED:
        status = "CLOSED"
    else:
        raise MalformedResponse(f"order account has unknown status byte: {raw_status}")

    expected_length = offset + fill_count * _FILL.size
    if len(data) < expected_length:
        raise MalformedResponse(
            f"order account declares {fill_count} fills but holds {len(data)} of {expected_length} bytes"
        )

    fills = [Fill(*_FILL.unpack_from(data, offset + index * _FILL.size)) for index in range(fill_count)]
    return OrderSnapshot(status=status, fills=fills)
