import pytest

from ngblocks.byteorder import (
    Endianness,
    int_format,
    pack_int,
    swap_u32,
    unpack_int,
)
from ngblocks.exceptions import BadMagic, InvalidField


def test_endianness_from_magic():
    assert Endianness.from_magic(0x1A2B3C4D) is Endianness.BIG
    assert Endianness.from_magic(0x4D3C2B1A) is Endianness.LITTLE


@pytest.mark.parametrize("magic", [0x00000000, 0xFFFFFFFF, 0x0BADBEEF])
def test_endianness_from_bad_magic(magic):
    with pytest.raises(BadMagic) as ctx:
        Endianness.from_magic(magic)

    assert isinstance(ctx.value, InvalidField)
    assert str(ctx.value) == (
        "SectionHeaderBlock: invalid magic number: got 0x{0:08X}, "
        "expected 0x1A2B3C4D or 0x4D3C2B1A".format(magic)
    )


def test_int_format():
    assert int_format(8) == ">B"
    assert int_format(16, True) == ">h"
    assert int_format(32, False, Endianness.LITTLE) == "<I"
    assert int_format(64, True, Endianness.LITTLE) == "<q"


def test_pack_int():
    assert pack_int(0x1234, 16) == b"\x12\x34"
    assert pack_int(0x1234, 16, endianness=Endianness.LITTLE) == b"\x34\x12"
    assert pack_int(-1, 64, True) == b"\xff" * 8
    assert pack_int(0x0A0D0D0A, 32, endianness=Endianness.LITTLE) == (
        b"\x0a\x0d\x0d\x0a"
    )


def test_unpack_int():
    assert unpack_int(b"\x12\x34\x56\x78", 32) == 0x12345678
    assert unpack_int(b"\x12\x34\x56\x78", 32, False, Endianness.LITTLE) == (
        0x78563412
    )
    assert unpack_int(b"\xed\xcc", 16, True) == -0x1234
    assert unpack_int(b"\xcc\xed", 16, True, Endianness.LITTLE) == -0x1234

    # Buffers views are accepted too
    assert unpack_int(memoryview(b"\x00\x00\x00\x20"), 32) == 0x20


def test_swap_u32():
    assert swap_u32(0x1C000000) == 0x1C
    assert swap_u32(0x1A2B3C4D) == 0x4D3C2B1A
    assert swap_u32(swap_u32(0xDEADBEEF)) == 0xDEADBEEF
