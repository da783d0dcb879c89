# -*- coding: utf-8 -*-
"""
The security tags common to the file header and the image subheader.
"""

from typing import Tuple

from .base import _BasicField, _StringField, _DateField


__classification__ = "UNCLASSIFIED"


def security_fields(prefix: str) -> Tuple[_BasicField, ...]:
    """
    The ordered security tag fields for NITF version 2.1, named with the given
    prefix (`FS` for the file header, `IS` for the image subheader).

    Parameters
    ----------
    prefix : str

    Returns
    -------
    Tuple[_BasicField, ...]
    """

    return (
        _StringField(prefix + 'CLAS', 1),
        _StringField(prefix + 'CLSY', 2, required=False),
        _StringField(prefix + 'CODE', 11, required=False),
        _StringField(prefix + 'CTLH', 2, required=False),
        _StringField(prefix + 'REL', 20, required=False),
        _StringField(prefix + 'DCTP', 2, required=False),
        _DateField(prefix + 'DCDT'),
        _StringField(prefix + 'DCXM', 4, required=False),
        _StringField(prefix + 'DG', 1, required=False),
        _DateField(prefix + 'DGDT'),
        _StringField(prefix + 'CLTX', 43, required=False),
        _StringField(prefix + 'CATP', 1, required=False),
        _StringField(prefix + 'CAUT', 40, required=False),
        _StringField(prefix + 'CRSN', 1, required=False),
        _DateField(prefix + 'SRDT'),
        _StringField(prefix + 'CTLN', 15, required=False))


NITF_SECURITY_LENGTH = sum(fld.length for fld in security_fields(''))
"""
The byte length of the security tag group, which is 167.
"""
