"""
Module: apk.res_value

Purpose:
    Res_value - the typed value record shared by binary XML attributes and
    resource table entries.

Key Classes:
    - ResValue: (data_type, data) pair

Key Functions:
    - read_res_value(): Read an 8-byte Res_value at the cursor

Dependencies:
    - apk.reader: ByteCursor

Used By:
    - apk.axml, apk.arsc
"""

from __future__ import annotations

from dataclasses import dataclass

from .reader import ByteCursor

RES_VALUE_SIZE = 8

TYPE_NULL = 0x00
TYPE_REFERENCE = 0x01
TYPE_ATTRIBUTE = 0x02
TYPE_STRING = 0x03
TYPE_FLOAT = 0x04
TYPE_DYNAMIC_REFERENCE = 0x07
TYPE_DYNAMIC_ATTRIBUTE = 0x08
TYPE_FIRST_INT = 0x10
TYPE_LAST_INT = 0x1F


@dataclass(frozen=True)
class ResValue:
    data_type: int
    data: int

    @property
    def is_reference(self) -> bool:
        return self.data_type in (TYPE_REFERENCE, TYPE_DYNAMIC_REFERENCE)

    @property
    def is_attribute(self) -> bool:
        return self.data_type in (TYPE_ATTRIBUTE, TYPE_DYNAMIC_ATTRIBUTE)

    @property
    def is_string(self) -> bool:
        return self.data_type == TYPE_STRING


def read_res_value(cursor: ByteCursor) -> ResValue:
    """
    Read a Res_value.

    The declared size field is trusted only as far as the fixed 8-byte
    layout; larger declared sizes are skipped over.
    """
    size = cursor.u16()
    cursor.u8()  # res0
    data_type = cursor.u8()
    data = cursor.u32()
    if size < RES_VALUE_SIZE:
        raise cursor.error(f"Res_value size {size} < {RES_VALUE_SIZE}")
    return ResValue(data_type, data)
