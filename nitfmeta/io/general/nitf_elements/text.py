# -*- coding: utf-8 -*-
"""
The text extension subheader definitions.
"""

from .base import NITFElement, _StringField

__classification__ = "UNCLASSIFIED"


class TextSegmentHeader(NITFElement):
    """
    Text Segment Subheader for NITF version 2.1 - see standards document
    MIL-STD-2500C for more information. Only the file part type and text
    identifier are decoded.
    """

    _fields = (
        _StringField('TE', 2),
        _StringField('TEXTID', 7))
