"""
Building blocks to decode and encode block bodies.

Bodies are described by a *schema*: an ordered list of
``(name, field, default)`` tuples, ``field`` being a
:py:class:`StructField` that knows how to load its value from a
:py:class:`SliceReader` and how to write it back to a stream.

Decoding works on in-memory data only: a :py:class:`SliceReader` hands
out read-only views of the buffer, so packet payloads are never copied,
and raises :py:exc:`~ngblocks.exceptions.IncompleteBuffer` when the data
runs out. The stream helpers (:py:func:`read_bytes`, :py:func:`read_int`)
are used by the framing layer to pull whole blocks out of files.

Every writing function returns how many bytes it wrote; a body can thus
be measured (see :py:class:`NullWriter`) before its envelope is written.
"""

import abc
import itertools
import struct
from collections import defaultdict, namedtuple
from collections.abc import Mapping

from ngblocks import strictness as strictness
from ngblocks.byteorder import Endianness, pack_int, unpack_int
from ngblocks.exceptions import (
    IncompleteBuffer,
    InvalidField,
    PcapngLoadError,
    StreamEmpty,
    TruncatedFile,
)
from ngblocks.utils import (
    pack_euiaddr,
    pack_ipv4,
    pack_ipv6,
    pack_macaddr,
    unpack_euiaddr,
    unpack_ipv4,
    unpack_ipv6,
    unpack_macaddr,
)

# Option value types
TYPE_BYTES = "bytes"
TYPE_STRING = "string"
TYPE_IPV4 = "ipv4"
TYPE_IPV4_MASK = "ipv4+mask"
TYPE_IPV6 = "ipv6"
TYPE_IPV6_PREFIX = "ipv6+prefix"
TYPE_MACADDR = "macaddr"
TYPE_EUIADDR = "euiaddr"
TYPE_TYPE_BYTES = "type+bytes"
TYPE_OPT_CUSTOM_STR = "opt_custom_str"
TYPE_OPT_CUSTOM_BYTES = "opt_custom_bytes"

TYPE_U8 = "u8"
TYPE_U16 = "u16"
TYPE_U32 = "u32"
TYPE_U64 = "u64"
TYPE_I8 = "i8"
TYPE_I16 = "i16"
TYPE_I32 = "i32"
TYPE_I64 = "i64"

# ftype: (bits, signed)
_numeric_types = {
    TYPE_U8: (8, False),
    TYPE_I8: (8, True),
    TYPE_U16: (16, False),
    TYPE_I16: (16, True),
    TYPE_U32: (32, False),
    TYPE_I32: (32, True),
    TYPE_U64: (64, False),
    TYPE_I64: (64, True),
}

# Name resolution record types
NRB_RECORD_END = 0
NRB_RECORD_IPv4 = 1
NRB_RECORD_IPv6 = 2

OPT_ENDOFOPT = 0


def padding_for(size, pad_block_size=4):
    """Number of bytes needed to align ``size`` to ``pad_block_size``"""
    return (pad_block_size - (size % pad_block_size)) % pad_block_size


# -------------------- Streams --------------------


def read_bytes(stream, size):
    """
    Read exactly ``size`` bytes from a stream.

    :raises: :py:exc:`~ngblocks.exceptions.StreamEmpty` when the stream
        is already exhausted, :py:exc:`~ngblocks.exceptions.TruncatedFile`
        when it ends after some, but not all, of the bytes.
    """
    if size == 0:
        return b""

    data = stream.read(size)
    if not data:
        raise StreamEmpty("Zero bytes read from stream")
    if len(data) < size:
        raise TruncatedFile(
            "Trying to read {0} bytes, only got {1}".format(size, len(data))
        )
    return data


def read_int(stream, size, signed=False, endianness=Endianness.BIG):
    """
    Read an integer of ``size`` bits (8, 16, 32 or 64) from a stream,
    in the given :py:class:`~ngblocks.byteorder.Endianness`.
    """
    return unpack_int(read_bytes(stream, size // 8), size, signed, endianness)


def write_bytes(stream, data):
    stream.write(data)
    return len(data)


def write_int(number, stream, size, signed=False, endianness=Endianness.BIG):
    """
    Write an integer of ``size`` bits to a stream.

    :returns: the number of bytes written
    """
    return write_bytes(stream, pack_int(number, size, signed, endianness))


def write_bytes_padded(stream, data, pad_block_size=4):
    """
    Write ``data`` followed by zeros up to the next multiple of
    ``pad_block_size``.

    :returns: the number of bytes written, padding included
    """
    written = write_bytes(stream, data)
    padding = padding_for(len(data), pad_block_size)
    if padding:
        written += write_bytes(stream, bytes(padding))
    return written


class NullWriter(object):
    """A stream that only counts what is written to it"""

    __slots__ = []

    def write(self, data):
        return len(data)


# -------------------- In-memory buffers --------------------


class SliceReader(object):
    """
    Read cursor over a bytes-like object.

    Reads return read-only :py:class:`memoryview` slices sharing the
    memory of the original buffer.
    """

    __slots__ = ["view", "offset"]

    def __init__(self, data):
        self.view = memoryview(data).cast("B").toreadonly()
        self.offset = 0

    @property
    def remaining(self):
        return len(self.view) - self.offset

    def rest(self):
        """View of the unread data; the cursor does not move"""
        return self.view[self.offset :]

    def read_bytes(self, size):
        """
        Consume ``size`` bytes.

        Nothing is consumed if fewer are left: the
        :py:exc:`~ngblocks.exceptions.IncompleteBuffer` raised tells how
        many are missing.
        """
        if size > self.remaining:
            raise IncompleteBuffer(size - self.remaining)
        start = self.offset
        self.offset += size
        return self.view[start : self.offset]

    def read_bytes_padded(self, size, pad_block_size=4):
        data = self.read_bytes(size)
        self.read_bytes(padding_for(size, pad_block_size))
        return data

    def read_rest(self):
        return self.read_bytes(self.remaining)

    def read_int(self, size, signed=False, endianness=Endianness.BIG):
        return unpack_int(self.read_bytes(size // 8), size, signed, endianness)


# -------------------- Struct fields --------------------


class StructField(object, metaclass=abc.ABCMeta):
    """One entry of a block body schema"""

    __slots__ = []

    @abc.abstractmethod
    def load(self, reader, endianness, seen=None):
        """
        Decode the value from ``reader``.

        ``seen`` maps the names of the fields decoded so far to their
        values, for fields depending on an earlier one.
        """

    @abc.abstractmethod
    def encode(self, value, stream, endianness):
        """Write the value to ``stream``; return the number of bytes written"""

    def __repr__(self):
        return "{0}()".format(self.__class__.__name__)


class IntField(StructField):
    """An integer of ``size`` bits (8, 16, 32 or 64), signed or not"""

    __slots__ = ["size", "signed"]

    def __init__(self, size, signed=False):
        self.size = size
        self.signed = signed

    def load(self, reader, endianness, seen=None):
        return reader.read_int(self.size, self.signed, endianness)

    def encode(self, number, stream, endianness):
        if not isinstance(number, int):
            raise TypeError("'{}' is not numeric".format(number))
        return write_int(number, stream, self.size, self.signed, endianness)

    def __repr__(self):
        return "{0}(size={1!r}, signed={2!r})".format(
            self.__class__.__name__, self.size, self.signed
        )


class PacketBytes(StructField):
    """
    Packet payload whose length was stored in an earlier field
    (``len_field``), padded to 32 bits.
    """

    __slots__ = ["dependency"]

    def __init__(self, len_field):
        self.dependency = len_field

    def load(self, reader, endianness, seen=None):
        if not seen or self.dependency not in seen:
            raise PcapngLoadError(
                "Packet data length field '{0}' was not decoded".format(
                    self.dependency
                )
            )
        return reader.read_bytes_padded(seen[self.dependency])

    def encode(self, packet, stream, endianness=None):
        return write_bytes_padded(stream, packet)

    def __repr__(self):
        return "{0}({1!r})".format(self.__class__.__name__, self.dependency)


class RemainingBytes(StructField):
    """Everything left in the body; padded to 32 bits when written"""

    __slots__ = []

    def load(self, reader, endianness=None, seen=None):
        return reader.read_rest()

    def encode(self, value, stream, endianness=None):
        return write_bytes_padded(stream, value)


class OptionsField(StructField):
    """
    The options list closing most block bodies, decoded into
    :py:class:`Options`.

    :param options_schema: list of :py:class:`Option` known for the block
    """

    __slots__ = ["options_schema"]

    def __init__(self, options_schema):
        self.options_schema = options_schema

    def load(self, reader, endianness, seen=None):
        return Options(
            schema=self.options_schema,
            data=read_options(reader, endianness),
            endianness=endianness,
        )

    def encode(self, options, stream, endianness):
        return write_options(stream, options, endianness)

    def __repr__(self):
        return "{0}({1!r})".format(self.__class__.__name__, self.options_schema)


class ListField(StructField):
    """
    A run of values of the same ``subfield``, decoded into a list.

    Decoding stops when the body is exhausted, or when the subfield
    raises :py:exc:`~ngblocks.exceptions.StreamEmpty` on its end marker.
    Encoding lets the subfield write that marker (``encode_finish``).
    """

    __slots__ = ["subfield"]

    def __init__(self, subfield):
        self.subfield = subfield

    def load(self, reader, endianness, seen=None):
        items = []
        while reader.remaining > 0:
            try:
                items.append(self.subfield.load(reader, endianness))
            except StreamEmpty:
                break
        return items

    def encode(self, items, stream, endianness):
        written = sum(self.subfield.encode(item, stream, endianness) for item in items)
        return written + self.subfield.encode_finish(stream, endianness)

    def __repr__(self):
        return "{0}({1!r})".format(self.__class__.__name__, self.subfield)


class NameResolutionRecordField(StructField):
    """
    One record of a :py:class:`~ngblocks.blocks.NameResolutionBlock`:
    a u16 record type, a u16 value length and the (padded) value.

    IPv4 and IPv6 records hold an address followed by zero-terminated
    names, decoded as ``{"type", "address", "names"}`` dicts. Records of
    other types are kept as ``{"type", "raw"}``. Type 0 ends the list.
    """

    __slots__ = []

    _address_codecs = {
        NRB_RECORD_IPv4: (4, unpack_ipv4, pack_ipv4),
        NRB_RECORD_IPv6: (16, unpack_ipv6, pack_ipv6),
    }

    def load(self, reader, endianness, seen=None):
        record_type = reader.read_int(16, False, endianness)
        length = reader.read_int(16, False, endianness)
        if record_type == NRB_RECORD_END:
            raise StreamEmpty("End of name resolution records")

        value = bytes(reader.read_bytes_padded(length))
        if record_type not in self._address_codecs:
            return {"type": record_type, "raw": value}

        size, unpack, _ = self._address_codecs[record_type]
        if len(value) < size:
            raise InvalidField(
                "Name resolution record of type {0} holds {1} bytes, "
                "too short for a {2} bytes address".format(
                    record_type, len(value), size
                )
            )
        try:
            names = [name.decode() for name in value[size:].split(b"\x00") if name]
        except UnicodeDecodeError as e:
            raise InvalidField(
                "Name resolution record names are not valid utf-8: {0}".format(e)
            ) from e
        return {"type": record_type, "address": unpack(value[:size]), "names": names}

    def encode(self, record, stream, endianness):
        record_type = record["type"]
        if record_type == NRB_RECORD_END:
            # written once, by encode_finish()
            return 0

        if record_type in self._address_codecs:
            _, _, pack = self._address_codecs[record_type]
            value = pack(record["address"]) + b"".join(
                name.encode() + b"\x00" for name in record["names"]
            )
        else:
            value = record["raw"]

        written = write_int(record_type, stream, 16, False, endianness)
        written += write_int(len(value), stream, 16, False, endianness)
        return written + write_bytes_padded(stream, value)

    def encode_finish(self, stream, endianness):
        return write_int(NRB_RECORD_END, stream, 32, False, endianness)


def struct_decode(schema, reader, endianness):
    """
    Decode the fields of ``schema``, in order, from a
    :py:class:`SliceReader`.

    :returns: a dict of field name to value
    """
    decoded = {}
    for name, field, _ in schema:
        decoded[name] = field.load(reader, endianness, seen=decoded)
    return decoded


def struct_encode(schema, obj, stream, endianness):
    """
    Write the attributes of ``obj`` named by ``schema``, in order.

    :returns: the number of bytes written
    """
    return sum(
        field.encode(getattr(obj, name), stream, endianness)
        for name, field, _ in schema
    )


# -------------------- Options --------------------


def read_options(reader, endianness):
    """
    Read ``(code, raw value)`` pairs until the end-of-options marker
    (code 0) or the end of the body.

    On the wire, each option is a u16 code, a u16 value length, then
    the value padded to 32 bits.
    """
    options = []
    while reader.remaining > 0:
        code = reader.read_int(16, False, endianness)
        length = reader.read_int(16, False, endianness)
        if code == OPT_ENDOFOPT:
            break
        options.append((code, bytes(reader.read_bytes_padded(length))))
    return options


def write_options(stream, options, endianness):
    """
    Write an :py:class:`Options` mapping, then the end-of-options marker.

    Empty options are not written at all (not even the marker).

    :returns: the number of bytes written
    """
    if not options:
        return 0

    written = 0
    for name in options:
        code = options._code_for(name)
        values = options.get_all_raw(name, endianness)
        if len(values) > 1 and not options._option(code).multiple:
            strictness.problem(
                "writing repeated option {0} not permitted "
                "by the pcapng format".format(options._describe(code))
            )
            if strictness.should_fix():
                del values[1:]
        for value in values:
            written += write_int(code, stream, 16, False, endianness)
            written += write_int(len(value), stream, 16, False, endianness)
            written += write_bytes_padded(stream, value)
    return written + write_int(OPT_ENDOFOPT, stream, 32, False, endianness)


# An option known to a block: its code, name, value type and whether
# it may appear more than once
Option = namedtuple(
    "Option", ("code", "name", "ftype", "multiple"), defaults=(TYPE_BYTES, False)
)

# Options every block may carry
COMMON_OPTIONS = [
    Option(OPT_ENDOFOPT, "opt_endofopt"),
    Option(1, "opt_comment", TYPE_STRING, multiple=True),
    Option(2988, "custom_str_safe", TYPE_OPT_CUSTOM_STR, multiple=True),
    Option(2989, "custom_bytes_safe", TYPE_OPT_CUSTOM_BYTES, multiple=True),
    Option(19372, "custom_str", TYPE_OPT_CUSTOM_STR, multiple=True),
    Option(19373, "custom_bytes", TYPE_OPT_CUSTOM_BYTES, multiple=True),
]


def _unpack_custom(raw, endianness):
    return unpack_int(raw[:4], 32, False, endianness), raw[4:]


def _pack_custom(value, endianness):
    pen, data = value
    return pack_int(pen, 32, False, endianness) + data


# ftype: (raw bytes -> value, value -> raw bytes); both get the endianness
_value_codecs = {
    TYPE_BYTES: (lambda raw, e: raw, lambda value, e: bytes(value)),
    TYPE_STRING: (
        lambda raw, e: raw.decode("utf-8"),
        lambda value, e: value.encode("utf-8"),
    ),
    TYPE_IPV4: (lambda raw, e: unpack_ipv4(raw), lambda value, e: pack_ipv4(value)),
    TYPE_IPV4_MASK: (
        lambda raw, e: (unpack_ipv4(raw[:4]), unpack_ipv4(raw[4:8])),
        lambda value, e: pack_ipv4(value[0]) + pack_ipv4(value[1]),
    ),
    TYPE_IPV6: (lambda raw, e: unpack_ipv6(raw), lambda value, e: pack_ipv6(value)),
    TYPE_IPV6_PREFIX: (
        lambda raw, e: (unpack_ipv6(raw[:16]), raw[16]),
        lambda value, e: pack_ipv6(value[0]) + bytes((value[1],)),
    ),
    TYPE_MACADDR: (
        lambda raw, e: unpack_macaddr(raw),
        lambda value, e: pack_macaddr(value),
    ),
    TYPE_EUIADDR: (
        lambda raw, e: unpack_euiaddr(raw),
        lambda value, e: pack_euiaddr(value),
    ),
    TYPE_TYPE_BYTES: (
        lambda raw, e: (raw[0], raw[1:]),
        lambda value, e: bytes((value[0],)) + value[1],
    ),
    TYPE_OPT_CUSTOM_STR: (
        lambda raw, e: (_unpack_custom(raw, e)[0], raw[4:].decode("utf-8")),
        lambda value, e: _pack_custom((value[0], value[1].encode("utf-8")), e),
    ),
    TYPE_OPT_CUSTOM_BYTES: (_unpack_custom, _pack_custom),
}

for _ftype, (_size, _signed) in _numeric_types.items():
    _value_codecs[_ftype] = (
        lambda raw, e, size=_size, signed=_signed: unpack_int(raw, size, signed, e),
        lambda value, e, size=_size, signed=_signed: pack_int(value, size, signed, e),
    )


def _value_codec(ftype):
    try:
        return _value_codecs[ftype]
    except KeyError:
        raise ValueError("Unsupported field type: {0}".format(ftype))


class Options(Mapping):
    """
    The options of a block, as a read-only-looking mapping with a few
    extra methods to change them.

    Options are addressed by name when the block knows them (see
    ``schema``), or by numeric code. Iterating gives names where
    available, codes otherwise.

    ``options[name]`` is the first value of an option; some options may
    be repeated, :py:meth:`get_all` returns all of their values.

    Values are decoded according to the option type:

    - ``bytes``: kept as-is
    - ``string``: utf-8 text
    - ``u8`` ... ``u64``, ``i8`` ... ``i64``: integers, in the section
      byte order
    - ``ipv4``, ``ipv6``, ``macaddr``, ``euiaddr``: address strings
    - ``ipv4+mask``: ``(address, netmask)``
    - ``ipv6+prefix``: ``(address, prefix length)``
    - ``type+bytes``: ``(type, data)``
    - ``opt_custom_str``, ``opt_custom_bytes``:
      ``(private enterprise number, text or data)``

    Options with a code not in the schema are kept as raw bytes.

    :param schema: list of :py:class:`Option` known by the block, on top
        of the :py:data:`COMMON_OPTIONS`
    :param data: list of ``(code, raw value)`` pairs, as read from a file
    :param endianness: byte order of the section, for numeric values
    """

    __slots__ = ["schema", "_codes", "data", "endianness"]

    def __init__(self, schema, data=None, endianness=Endianness.BIG):
        self.schema = {}  # {code: Option}
        for item in itertools.chain(COMMON_OPTIONS, schema):
            if not isinstance(item, Option):
                raise TypeError("expected option, got '{}'".format(item))
            self.schema[item.code] = item
        self._codes = {item.name: code for code, item in self.schema.items()}

        self.data = defaultdict(list)  # {code: [value, ...]}
        self.endianness = endianness
        for code, raw in data or ():
            self._load(code, raw)

    def __eq__(self, other):
        if not isinstance(other, Options):
            return NotImplemented
        return self.data == other.data

    def __getitem__(self, name):
        values = self.get_all(name)
        if not values:
            raise KeyError(name)
        return values[0]

    def __len__(self):
        return len(self.data)

    def __iter__(self):
        return (self._option(code).name for code in self.data)

    def __setitem__(self, name, value):
        """Set an option; a list sets all of its values at once"""
        code = self._code_for(name)
        self.data[code] = list(value) if isinstance(value, list) else [value]
        self._check_repeated(code)

    def __delitem__(self, name):
        del self.data[self._code_for(name)]

    def get_all(self, name):
        """All values of an option, in order; empty if absent"""
        return self.data.get(self._code_for(name), [])

    def get_raw(self, name, endianness=None):
        """First value of an option, encoded"""
        return self.get_all_raw(name, endianness)[0]

    def get_all_raw(self, name, endianness=None):
        """
        All values of an option, encoded; in ``endianness`` if given,
        else in the byte order the options were read with.
        """
        if endianness is None:
            endianness = self.endianness
        _, pack = _value_codec(self._option(self._code_for(name)).ftype)
        return [pack(value, endianness) for value in self.get_all(name)]

    def iter_all_items(self):
        """Like :py:meth:`items`, with the list of all values of each option"""
        for name in self:
            yield name, self.get_all(name)

    def add(self, name, value):
        """Append a value to an option"""
        code = self._code_for(name)
        self.data[code].append(value)
        self._check_repeated(code)

    def __repr__(self):
        return "{0}({1!r})".format(self.__class__.__name__, dict(self.iter_all_items()))

    def _load(self, code, raw):
        unpack, _ = _value_codec(self._option(code).ftype)
        try:
            value = unpack(raw, self.endianness)
        except (ValueError, IndexError, struct.error, OSError) as e:
            raise InvalidField(
                "Malformed value for option {0}: {1!r} ({2})".format(
                    self._describe(code), bytes(raw), e
                )
            ) from e
        self.data[code].append(value)
        if len(self.data[code]) > 1 and not self._option(code).multiple:
            # Only warn: reading a questionable file should still work
            strictness.warn(
                "repeated option {0} not permitted by the pcapng format".format(
                    self._describe(code)
                )
            )

    def _check_repeated(self, code):
        if len(self.data[code]) > 1 and not self._option(code).multiple:
            strictness.problem(
                "repeated option {0} not permitted by the pcapng format".format(
                    self._describe(code)
                )
            )
            if strictness.should_fix():
                del self.data[code][1:]

    def _code_for(self, name):
        code = self._codes.get(name, name)
        # opt_endofopt only exists on the wire
        if not isinstance(code, int) or code == OPT_ENDOFOPT:
            raise KeyError(name)
        return code

    def _option(self, code):
        # Nothing is known about options missing from the schema
        if code in self.schema:
            return self.schema[code]
        return Option(code, code, TYPE_BYTES, multiple=True)

    def _describe(self, code):
        if code in self.schema:
            return "{0} '{1}'".format(code, self.schema[code].name)
        return "{0} (unknown)".format(code)
