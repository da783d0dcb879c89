# -*- coding: utf-8 -*-
"""
The image subheader definitions.
"""

from .base import NITFElement, FieldMap, FieldCursor, _BasicField, \
    _StringField, _DateTimeField
from .security import security_fields


__classification__ = "UNCLASSIFIED"


class ImageSegmentHeader(NITFElement):
    """
    The image segment header - see standards document MIL-STD-2500C for more
    information. This decodes the identification and security fields, followed
    by the image description fields through the compression rate.

    `IGEOLO` is only present when `ICORDS` is specified, the image comments
    `ICOM1`, ... are present according to the count `NICOM`, and `COMRAT` is
    only present for compressed images.
    """

    _fields = (
        _StringField('IM', 2),
        _StringField('IID1', 10),
        _DateTimeField('IDATIM'),
        _StringField('TGTID', 17, required=False),
        _StringField('IID2', 80, required=False)) + \
        security_fields('IS') + (
        _StringField('ENCRYP', 1),
        _StringField('ISORCE', 42, required=False),
        _StringField('NROWS', 8),
        _StringField('NCOLS', 8),
        _StringField('PVTYPE', 3),
        _StringField('IREP', 8),
        _StringField('ICAT', 8),
        _StringField('ABPP', 2),
        _StringField('PJUST', 1),
        _StringField('ICORDS', 1, required=False),
        _StringField('IGEOLO', 60),
        _StringField('NICOM', 1),
        _StringField('IC', 2),
        _StringField('COMRAT', 4, required=False))

    @classmethod
    def _parse_attribute(cls, fields: FieldMap, field: _BasicField, cursor: FieldCursor) -> None:
        if field.name == 'IGEOLO':
            if 'ICORDS' not in fields:
                return
        elif field.name == 'COMRAT':
            if fields.get('IC', None) in ('NC', 'NM'):
                return
        elif field.name == 'NICOM':
            text, count = cursor.read_int(1, name='NICOM')
            fields['NICOM'] = text
            for i in range(1, count + 1):
                comment = cursor.read_optional(80)
                if comment is not None:
                    fields['ICOM{}'.format(i)] = comment
            return
        super(ImageSegmentHeader, cls)._parse_attribute(fields, field, cursor)
