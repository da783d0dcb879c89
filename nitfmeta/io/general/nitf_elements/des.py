# -*- coding: utf-8 -*-
"""
The data extension header element definition.
"""

from .base import NITFElement, _StringField

__classification__ = "UNCLASSIFIED"


class DataExtensionHeader(NITFElement):
    """
    The data extension subheader - see standards document MIL-STD-2500C for
    more information. Only the file part type and the unique extension type
    identifier are decoded.
    """

    _fields = (
        _StringField('DE', 2),
        _StringField('DESID', 25))
