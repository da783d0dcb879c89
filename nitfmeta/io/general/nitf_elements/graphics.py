# -*- coding: utf-8 -*-
"""
The graphics header element definition.
"""

from .base import NITFElement, _StringField

__classification__ = "UNCLASSIFIED"


class GraphicsSegmentHeader(NITFElement):
    """
    Graphics segment subheader - see standards document MIL-STD-2500C for more
    information. Only the file part type and graphic identifier are decoded.
    """

    _fields = (
        _StringField('SY', 2),
        _StringField('SID', 10))
