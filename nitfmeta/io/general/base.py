"""
The basic error definitions for NITF header decoding.
"""

__classification__ = "UNCLASSIFIED"

from typing import Optional


class NITFMetaError(Exception):
    """A custom exception class for nitfmeta."""


class NITFMetaIOError(NITFMetaError):
    """A custom exception class for discovered input/output errors."""


class NITFDecodeError(NITFMetaError):
    """
    A failure to decode the header structure of a NITF buffer. This carries the
    byte offset at which the failure was detected, and the decode phase, once
    that is known.
    """

    def __init__(self, message: str, offset: Optional[int] = None, phase: Optional[str] = None):
        """

        Parameters
        ----------
        message : str
        offset : None|int
            The byte offset into the buffer where the problem was found.
        phase : None|str
            The decode phase, which is generally populated by the orchestrator.
        """

        super(NITFDecodeError, self).__init__(message)
        self.message = message
        self.offset = offset
        self.phase = phase

    def __str__(self):
        details = []
        if self.phase is not None:
            details.append('phase={}'.format(self.phase))
        if self.offset is not None:
            details.append('offset={}'.format(self.offset))
        if len(details) == 0:
            return self.message
        return '{} ({})'.format(self.message, ', '.join(details))


class TruncatedInputError(NITFDecodeError):
    """The buffer is shorter than the extent required by a field."""


class MalformedCountError(NITFDecodeError):
    """A decimal count or length field contains something other than digits."""


class MalformedTLVError(NITFDecodeError):
    """The tag/length/value entries do not fill their declared block length."""


class InvalidEncodingError(NITFDecodeError):
    """The field bytes are not valid text in the expected encoding."""
