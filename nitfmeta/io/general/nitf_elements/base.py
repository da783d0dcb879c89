# -*- coding: utf-8 -*-
"""
Base NITF header functionality definition. This provides the bounds checked
fixed width field reading shared by every header element, the declarative field
descriptions used by the header and subheader decoders, and the reading of the
tag/length/value (TRE) entries found in the header extension areas.
"""

import logging
from collections import OrderedDict
from typing import Union, List, Tuple, Optional, Sequence

from nitfmeta.io.general.base import TruncatedInputError, MalformedCountError, \
    MalformedTLVError, InvalidEncodingError


__classification__ = "UNCLASSIFIED"

logger = logging.getLogger(__name__)

_ENCODING = 'utf-8'
_DIGITS = frozenset('0123456789')

# the decoded field name -> value collection
FieldMap = OrderedDict

BufferType = Union[bytes, bytearray, memoryview]


def _as_buffer(value: Union[BufferType, str]) -> Union[bytes, memoryview]:
    if isinstance(value, bytes):
        return value
    elif isinstance(value, (bytearray, memoryview)):
        # a view, so the underlying buffer is never copied
        return memoryview(value).cast('B')
    elif isinstance(value, str):
        return value.encode(_ENCODING)
    else:
        raise TypeError('Requires a bytes or str type input, got {}'.format(type(value)))


def _check_extent(value: BufferType, start: int, width: int) -> None:
    if start < 0 or width < 0:
        raise ValueError('Got invalid start {} or width {}'.format(start, width))
    if start + width > len(value):
        raise TruncatedInputError(
            'Requires {} bytes at offset {}, but only {} are available'.format(
                width, start, max(len(value) - start, 0)),
            offset=start)


def _decode_text(raw: bytes, start: int) -> str:
    try:
        return raw.decode(_ENCODING)
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(
            'Field bytes {} are not valid {} text'.format(raw, _ENCODING),
            offset=start + e.start)


#########
# fixed width field reading

def read_bytes(value: BufferType, start: int, width: int) -> Tuple[bytes, int]:
    """
    Reads exactly `width` raw bytes beginning at `start`.

    Parameters
    ----------
    value : bytes
    start : int
    width : int

    Returns
    -------
    the_bytes : bytes
    next_start : int

    Raises
    ------
    TruncatedInputError
    """

    _check_extent(value, start, width)
    return bytes(value[start:start+width]), start + width


def read_field(value: BufferType, start: int, width: int) -> Tuple[str, int]:
    """
    Reads a required fixed width text field. Trailing whitespace is removed, so
    a blank field yields the empty string.

    Parameters
    ----------
    value : bytes
    start : int
    width : int

    Returns
    -------
    field_value : str
    next_start : int

    Raises
    ------
    TruncatedInputError
    InvalidEncodingError
    """

    raw, end = read_bytes(value, start, width)
    return _decode_text(raw, start).rstrip(), end


def read_optional_field(value: BufferType, start: int, width: int) -> Tuple[Optional[str], int]:
    """
    Reads an optional fixed width text field. A blank field yields `None`, which
    designates that the field is not specified.

    Parameters
    ----------
    value : bytes
    start : int
    width : int

    Returns
    -------
    field_value : None|str
    next_start : int
    """

    raw, end = read_bytes(value, start, width)
    text = _decode_text(raw, start).strip()
    return (text if text else None), end


def parse_int(raw: Union[bytes, str], offset: Optional[int] = None, name: Optional[str] = None) -> int:
    """
    Parse a fixed width decimal field. Every character must be an ASCII digit.

    Parameters
    ----------
    raw : bytes|str
    offset : None|int
        The byte offset of the field, for error reporting.
    name : None|str
        The field name, for error reporting.

    Returns
    -------
    int

    Raises
    ------
    MalformedCountError
    """

    text = bytes(raw).decode('latin-1') if isinstance(raw, (bytes, bytearray, memoryview)) else raw
    if len(text) == 0 or not _DIGITS.issuperset(text):
        raise MalformedCountError(
            'Expected decimal digits{}, got {!r}'.format(
                '' if name is None else ' for field {}'.format(name), text),
            offset=offset)
    return int(text)


def _read_composite(
        value: BufferType,
        start: int,
        widths: Sequence[int],
        separators: Sequence[str]) -> Tuple[Optional[str], int]:
    loc = start
    parts = []
    for width in widths:
        raw, loc = read_bytes(value, loc, width)
        parts.append(_decode_text(raw, loc - width))
    if ''.join(parts).strip() == '':
        return None, loc
    out = parts[0]
    for separator, part in zip(separators, parts[1:]):
        out += separator + part
    return out.strip(), loc


def read_date(value: BufferType, start: int) -> Tuple[Optional[str], int]:
    """
    Reads an 8 byte `YYYYMMDD` date, rendered as `YYYY/MM/DD`. An all blank date
    yields `None`.
    """

    return _read_composite(value, start, (4, 2, 2), ('/', '/'))


def read_datetime(value: BufferType, start: int) -> Tuple[Optional[str], int]:
    """
    Reads a 14 byte `YYYYMMDDhhmmss` date and time, rendered as
    `YYYY/MM/DD hh:mm:ss`. An all blank value yields `None`.
    """

    return _read_composite(value, start, (4, 2, 2, 2, 2, 2), ('/', '/', ' ', ':', ':'))


class FieldCursor(object):
    """
    A read position into an immutable buffer. Every read is checked against the
    buffer extent before any bytes are touched.
    """

    __slots__ = ('_value', '_position')

    def __init__(self, value: Union[BufferType, str], start: int = 0):
        """

        Parameters
        ----------
        value : bytes|bytearray|memoryview|str
        start : int
        """

        self._value = _as_buffer(value)
        start = int(start)
        if start < 0:
            raise ValueError('start must be non-negative, got {}'.format(start))
        self._position = start

    @property
    def value(self) -> Union[bytes, memoryview]:
        """
        bytes|memoryview: The underlying buffer.
        """

        return self._value

    @property
    def position(self) -> int:
        """
        int: The current read position.
        """

        return self._position

    def skip(self, width: int) -> None:
        _check_extent(self._value, self._position, width)
        self._position += width

    def read_bytes(self, width: int) -> bytes:
        out, self._position = read_bytes(self._value, self._position, width)
        return out

    def read(self, width: int) -> str:
        out, self._position = read_field(self._value, self._position, width)
        return out

    def read_optional(self, width: int) -> Optional[str]:
        out, self._position = read_optional_field(self._value, self._position, width)
        return out

    def read_int(self, width: int, name: Optional[str] = None) -> Tuple[str, int]:
        """
        Reads a decimal field.

        Parameters
        ----------
        width : int
        name : None|str

        Returns
        -------
        text : str
            The field exactly as recorded.
        number : int
        """

        start = self._position
        raw, end = read_bytes(self._value, start, width)
        number = parse_int(raw, offset=start, name=name)
        self._position = end
        return raw.decode('ascii'), number

    def read_date(self) -> Optional[str]:
        out, self._position = read_date(self._value, self._position)
        return out

    def read_datetime(self) -> Optional[str]:
        out, self._position = read_datetime(self._value, self._position)
        return out


#########
# field descriptions

class _BasicField(object):
    """
    The basic fixed width field description.
    """

    __slots__ = ('name', 'length', 'required')

    def __init__(self, name: str, length: int, required: bool = True):
        self.name = name
        self.length = length
        self.required = required

    def read_value(self, cursor: FieldCursor) -> Optional[str]:
        raise NotImplementedError

    def parse(self, cursor: FieldCursor, fields: FieldMap) -> None:
        """
        Read this field at the cursor, and record it in `fields` unless it is
        not specified. A blank field is not specified, whether or not it is
        required.
        """

        value = self.read_value(cursor)
        if value is not None and value.strip() != '':
            fields[self.name] = value

    def __repr__(self):
        return '{}({!r}, {})'.format(self.__class__.__name__, self.name, self.length)


class _StringField(_BasicField):
    """
    A text field. Optional fields are omitted when blank.
    """

    __slots__ = ()

    def read_value(self, cursor):
        if self.required:
            return cursor.read(self.length)
        return cursor.read_optional(self.length)


class _IntegerField(_BasicField):
    """
    A decimal field, recorded exactly as written.
    """

    __slots__ = ()

    def read_value(self, cursor):
        text, _ = cursor.read_int(self.length, name=self.name)
        return text


class _DateField(_BasicField):
    __slots__ = ()

    def __init__(self, name, required=False):
        super(_DateField, self).__init__(name, 8, required=required)

    def read_value(self, cursor):
        return cursor.read_date()


class _DateTimeField(_BasicField):
    __slots__ = ()

    def __init__(self, name, required=True):
        super(_DateTimeField, self).__init__(name, 14, required=required)

    def read_value(self, cursor):
        return cursor.read_datetime()


class _ColorField(_BasicField):
    """
    A three byte binary color, rendered as `0xRRGGBB`.
    """

    __slots__ = ()

    def __init__(self, name, required=True):
        super(_ColorField, self).__init__(name, 3, required=required)

    def read_value(self, cursor):
        raw = cursor.read_bytes(self.length)
        return '0x{:02X}{:02X}{:02X}'.format(raw[0], raw[1], raw[2])


class NITFElement(object):
    """
    A header element described by an ordered collection of fixed width fields.
    Decoding is a pure function of the buffer and start location.
    """

    _fields = ()  # type: Tuple[_BasicField, ...]

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(fld.name for fld in cls._fields)

    @classmethod
    def _parse_attribute(cls, fields: FieldMap, field: _BasicField, cursor: FieldCursor) -> None:
        """
        Parse the given field at the cursor position. Subclasses with conditional
        fields extend this.

        Parameters
        ----------
        fields : FieldMap
            The name:value collection populated so far.
        field : _BasicField
        cursor : FieldCursor
        """

        field.parse(cursor, fields)

    @classmethod
    def parse_fields(cls, cursor: FieldCursor, fields: Optional[FieldMap] = None) -> FieldMap:
        """
        Parse all the fields of this element, advancing the cursor.

        Parameters
        ----------
        cursor : FieldCursor
        fields : None|FieldMap

        Returns
        -------
        FieldMap
        """

        if fields is None:
            fields = FieldMap()
        for fld in cls._fields:
            cls._parse_attribute(fields, fld, cursor)
        return fields

    @classmethod
    def decode(cls, value: Union[BufferType, str], start: int = 0) -> FieldMap:
        """
        Decode the element found at `start` of the buffer.

        Parameters
        ----------
        value : bytes
            The whole buffer.
        start : int
            The beginning location of the element.

        Returns
        -------
        FieldMap
        """

        return cls.parse_fields(FieldCursor(value, start))


######
# TRE Elements

class TREEntry(object):
    """
    A single tag/length/value entry from a header extension area.
    """

    __slots__ = ('_tag', '_length', '_value')

    def __init__(self, tag: str, length: int, value: str):
        """

        Parameters
        ----------
        tag : str
        length : int
            The declared value length in bytes.
        value : str
            The value text, without trailing whitespace.
        """

        if len(tag) > 6:
            raise ValueError('tag must be 6 or fewer characters')
        if not (0 <= length <= 99999):
            raise ValueError('length requires an integer value in the range 0-99999.')
        self._tag = tag
        self._length = length
        self._value = value

    @property
    def tag(self) -> str:
        return self._tag

    @property
    def length(self) -> int:
        return self._length

    @property
    def value(self) -> str:
        return self._value

    def get_bytes_length(self) -> int:
        return 11 + self._length

    def to_bytes(self) -> bytes:
        """
        Re-encode the entry, with the value padded out to its declared length.

        Returns
        -------
        bytes
        """

        data = self._value.encode(_ENCODING)
        if len(data) > self._length:
            raise ValueError(
                'Value for tag {} requires {} bytes, but the declared length '
                'is {}'.format(self._tag, len(data), self._length))
        return '{0:6s}{1:05d}'.format(self._tag, self._length).encode(_ENCODING) + \
            data.ljust(self._length, b' ')

    def __repr__(self):
        return 'TREEntry({!r}, {}, {!r})'.format(self._tag, self._length, self._value)


def read_tre_entries(value: Union[BufferType, str], start: int, total_length: int) -> List[TREEntry]:
    """
    Reads the tag/length/value entries occupying exactly `total_length` bytes
    beginning at `start`.

    Parameters
    ----------
    value : bytes
    start : int
    total_length : int

    Returns
    -------
    List[TREEntry]

    Raises
    ------
    TruncatedInputError
        The block extends past the end of the buffer.
    MalformedTLVError
        An entry crosses the block boundary.
    MalformedCountError
        An entry length is not decimal.
    """

    cursor = FieldCursor(value, start)
    if total_length < 0:
        raise MalformedTLVError('Got negative TLV block length {}'.format(total_length), offset=start)
    _check_extent(cursor.value, start, total_length)

    end = start + total_length
    entries = []
    while cursor.position < end:
        loc = cursor.position
        if loc + 11 > end:
            raise MalformedTLVError(
                'TLV entry header at offset {} crosses the block end at {}'.format(loc, end),
                offset=loc)
        tag = cursor.read(6)
        if tag == '':
            raise MalformedTLVError('Blank TLV tag at offset {}'.format(loc), offset=loc)
        _, length = cursor.read_int(5, name=tag)
        if cursor.position + length > end:
            raise MalformedTLVError(
                'TLV entry {} at offset {} declares length {}, which crosses the '
                'block end at {}'.format(tag, loc, length, end),
                offset=loc)
        entries.append(TREEntry(tag, length, cursor.read(length)))
    return entries


def read_tlv_block(value: Union[BufferType, str], start: int, total_length: int) -> FieldMap:
    """
    Reads the tag/length/value entries occupying exactly `total_length` bytes
    beginning at `start` into a tag:value collection. Entries with blank value
    are not recorded, and a repeated tag retains the final value.

    Parameters
    ----------
    value : bytes
    start : int
    total_length : int

    Returns
    -------
    FieldMap
    """

    out = FieldMap()
    for entry in read_tre_entries(value, start, total_length):
        if entry.value == '':
            logger.debug('Omitting TLV entry {} with blank value'.format(entry.tag))
            continue
        if entry.tag in out:
            logger.warning(
                'TLV tag {} occurs more than once in the block at offset {}, '
                'only the final value is retained'.format(entry.tag, start))
        out[entry.tag] = entry.value
    return out


def encode_tre_entries(entries: Sequence[TREEntry]) -> bytes:
    """
    Re-encode a collection of tag/length/value entries.

    Parameters
    ----------
    entries : Sequence[TREEntry]

    Returns
    -------
    bytes
    """

    return b''.join(entry.to_bytes() for entry in entries)

