"""
Identification of NITF input, by its initial bytes.
"""

__classification__ = "UNCLASSIFIED"


import os
from typing import Union, BinaryIO, Any, Optional


NITF_PROFILES = ('NITF02.10', 'NSIF01.00')
"""
The file profile and version combinations with the NITF 2.1 header layout.
"""

_PROFILE_TAGS = (b'NITF', b'NSIF')


def is_file_like(the_input: Any) -> bool:
    """
    Whether the input has callable `read`, `seek`, and `tell` attributes.
    """

    return all(callable(getattr(the_input, attribute, None)) for attribute in ('read', 'seek', 'tell'))


def nitf_version(file_object: Union[str, BinaryIO]) -> Optional[str]:
    """
    Fetch the version of a NITF (or NSIF) file, from its first nine bytes. The
    position of a file like object is restored.

    Parameters
    ----------
    file_object : str|BinaryIO

    Returns
    -------
    None|str
        `None` if the input is not a NITF file.
    """

    if is_file_like(file_object):
        current_location = file_object.tell()
        file_object.seek(0, os.SEEK_SET)
        header = file_object.read(9)
        file_object.seek(current_location, os.SEEK_SET)
    elif isinstance(file_object, str) and os.path.isfile(file_object):
        with open(file_object, 'rb') as fi:
            header = fi.read(9)
    else:
        return None

    if len(header) != 9 or header[:4] not in _PROFILE_TAGS:
        return None
    try:
        return header[4:].decode('utf-8')
    except UnicodeDecodeError:
        return None
