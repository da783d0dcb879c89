"""
The main NITF header definitions.
"""

__classification__ = "UNCLASSIFIED"

import logging
from typing import Tuple, Union

import numpy

from nitfmeta.io.general.base import MalformedCountError, MalformedTLVError
from .base import NITFElement, FieldMap, FieldCursor, BufferType, \
    _BasicField, _StringField, _IntegerField, _DateTimeField, _ColorField, \
    parse_int, read_tlv_block
from .security import security_fields

logger = logging.getLogger(__name__)


#############
# segment item arrays

class _ItemArrayHeaders(object):
    """
    Item array in the NITF header (i.e. Image Segment, Text Segment). This
    describes the count field, and the subheader and item length fields recorded
    for each segment of one kind.
    """

    kind = ''
    _count_field = ''
    _subhead_prefix = ''
    _item_prefix = ''
    _subhead_len = 0
    _item_len = 0

    @classmethod
    def count_field(cls) -> str:
        return cls._count_field

    @classmethod
    def subhead_key(cls, index: int) -> str:
        """
        The header key of the subheader length for the given 1-based index.
        """

        return '{0:s}{1:03d}'.format(cls._subhead_prefix, index)

    @classmethod
    def item_key(cls, index: int) -> str:
        """
        The header key of the item length for the given 1-based index.
        """

        return '{0:s}{1:03d}'.format(cls._item_prefix, index)

    @classmethod
    def parse(cls, cursor: FieldCursor, fields: FieldMap) -> int:
        """
        Parse the count, then that many subheader length and item length pairs.

        Parameters
        ----------
        cursor : FieldCursor
        fields : FieldMap

        Returns
        -------
        int
            The segment count.
        """

        text, count = cursor.read_int(3, name=cls._count_field)
        fields[cls._count_field] = text
        for index in range(1, count + 1):
            key = cls.subhead_key(index)
            fields[key], _ = cursor.read_int(cls._subhead_len, name=key)
            key = cls.item_key(index)
            fields[key], _ = cursor.read_int(cls._item_len, name=key)
        return count

    @classmethod
    def get_count(cls, fields: FieldMap) -> int:
        value = fields.get(cls._count_field, None)
        if value is None:
            raise MalformedCountError('Header has no count field {}'.format(cls._count_field))
        return parse_int(value, name=cls._count_field)

    @classmethod
    def get_sizes(cls, fields: FieldMap) -> Tuple[numpy.ndarray, numpy.ndarray]:
        """
        Fetch the subheader sizes and item sizes recorded in the decoded header.

        Parameters
        ----------
        fields : FieldMap

        Returns
        -------
        subhead_sizes : numpy.ndarray
        item_sizes : numpy.ndarray
        """

        count = cls.get_count(fields)
        subhead_sizes = numpy.zeros((count, ), dtype=numpy.int64)
        item_sizes = numpy.zeros((count, ), dtype=numpy.int64)
        for i in range(count):
            subhead_sizes[i] = _fetch_field_int(fields, cls.subhead_key(i+1))
            item_sizes[i] = _fetch_field_int(fields, cls.item_key(i+1))
        return subhead_sizes, item_sizes


def _fetch_field_int(fields: FieldMap, name: str) -> int:
    value = fields.get(name, None)
    if value is None:
        raise MalformedCountError('Header is missing the length field {}'.format(name))
    return parse_int(value, name=name)


class ImageSegmentsType(_ItemArrayHeaders):
    """
    This holds the image subheader and item sizes.
    """

    kind = 'image'
    _count_field = 'NUMI'
    _subhead_prefix = 'LISH'
    _item_prefix = 'LI'
    _subhead_len = 6
    _item_len = 10


class GraphicsSegmentsType(_ItemArrayHeaders):
    """
    This holds the graphics subheader and item sizes.
    """

    kind = 'graphic'
    _count_field = 'NUMS'
    _subhead_prefix = 'LSSH'
    _item_prefix = 'LS'
    _subhead_len = 4
    _item_len = 6


class TextSegmentsType(_ItemArrayHeaders):
    """
    This holds the text subheader size and item sizes.
    """

    kind = 'text'
    _count_field = 'NUMT'
    _subhead_prefix = 'LTSH'
    _item_prefix = 'LT'
    _subhead_len = 4
    _item_len = 5


class DataExtensionsType(_ItemArrayHeaders):
    """
    This holds the data extension subheader and item sizes.
    """

    kind = 'data_extension'
    _count_field = 'NUMDES'
    _subhead_prefix = 'LDSH'
    _item_prefix = 'LD'
    _subhead_len = 4
    _item_len = 9


class ReservedExtensionsType(_ItemArrayHeaders):
    """
    This holds the reserved extension subheader and item sizes.
    """

    kind = 'reserved_extension'
    _count_field = 'NUMRES'
    _subhead_prefix = 'LRESH'
    _item_prefix = 'LRE'
    _subhead_len = 4
    _item_len = 7


SEGMENT_GROUPS = (
    ImageSegmentsType, GraphicsSegmentsType, TextSegmentsType,
    DataExtensionsType, ReservedExtensionsType)
"""
The segment groups, in file order.
"""


class _ItemArrayField(_BasicField):
    __slots__ = ('group', )

    def __init__(self, group):
        self.group = group
        super(_ItemArrayField, self).__init__(group.count_field(), 3)

    def parse(self, cursor, fields):
        self.group.parse(cursor, fields)


#############
# NITF 2.1 version

class NITFHeader(NITFElement):
    """
    The main NITF file header for NITF version 2.1 - see standards document
    MIL-STD-2500C for more information.

    The fixed fields run through the reserved extension segment lengths, and
    are followed by the user defined header and extended header areas, each a
    collection of tag/length/value entries.
    """

    _fields = (
        _StringField('FHDR', 4),
        _StringField('FVER', 5),
        _StringField('CLEVEL', 2),
        _StringField('STYPE', 4),
        _StringField('OSTAID', 10),
        _DateTimeField('FDT'),
        _StringField('FTITLE', 80, required=False)) + \
        security_fields('FS') + (
        _StringField('FSCOP', 5),
        _StringField('FSCPYS', 5),
        _StringField('ENCRYP', 1),
        _ColorField('FBKGC'),
        _StringField('ONAME', 24, required=False),
        _StringField('OPHONE', 18, required=False),
        _IntegerField('FL', 12),
        _IntegerField('HL', 6),
        _ItemArrayField(ImageSegmentsType),
        _ItemArrayField(GraphicsSegmentsType),
        _StringField('NUMX', 3),
        _ItemArrayField(TextSegmentsType),
        _ItemArrayField(DataExtensionsType),
        _ItemArrayField(ReservedExtensionsType))

    @classmethod
    def parse_extension_headers(cls, cursor: FieldCursor, fields: FieldMap) -> FieldMap:
        """
        Parse the user defined header and extended header areas, which follow the
        fixed fields. The entries of each area are recorded by tag.

        Parameters
        ----------
        cursor : FieldCursor
        fields : FieldMap

        Returns
        -------
        FieldMap
        """

        extension_tags = set()

        # the user defined header data length counts only the entries
        text, length = cursor.read_int(5, name='UDHDL')
        fields['UDHDL'] = text
        if length > 0:
            fields['UDHOFL'], _ = cursor.read_int(3, name='UDHOFL')
            _merge_entries(
                fields, read_tlv_block(cursor.value, cursor.position, length),
                'UDHD', cursor.position, extension_tags)
            cursor.skip(length)

        # the extended header data length includes the overflow field
        start = cursor.position
        text, length = cursor.read_int(5, name='XHDL')
        fields['XHDL'] = text
        if length > 0:
            if length < 3:
                raise MalformedTLVError(
                    'Extended header data length {} cannot hold the overflow field'.format(length),
                    offset=start)
            fields['XHOFL'], _ = cursor.read_int(3, name='XHOFL')
            _merge_entries(
                fields, read_tlv_block(cursor.value, cursor.position, length - 3),
                'XHD', cursor.position, extension_tags)
            cursor.skip(length - 3)
        return fields

    @classmethod
    def decode(cls, value: Union[BufferType, str], start: int = 0) -> FieldMap:
        cursor = FieldCursor(value, start)
        fields = cls.parse_fields(cursor)
        return cls.parse_extension_headers(cursor, fields)


def _merge_entries(
        fields: FieldMap, entries: FieldMap, area: str, offset: int, extension_tags: set) -> None:
    # entries never replace the fixed header fields
    for tag, value in entries.items():
        if tag in fields:
            if tag not in extension_tags:
                raise MalformedTLVError(
                    'Entry {} of the {} area has the name of a file header field'.format(tag, area),
                    offset=offset)
            logger.warning(
                'Entry {} of the {} area replaces an earlier extension entry '
                'of the same name'.format(tag, area))
        fields[tag] = value
        extension_tags.add(tag)
