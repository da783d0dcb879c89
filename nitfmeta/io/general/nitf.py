"""
Module laying out the decoding of the file header and segment subheaders of a
NITF 2.1 file.

The whole file content is held in memory. The file header is decoded first,
the offset of every segment is derived from the lengths recorded in the file
header, and then the segment subheaders are decoded in parallel.
"""

__classification__ = "UNCLASSIFIED"


import logging
import os
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, FIRST_EXCEPTION, wait
from contextlib import contextmanager
from typing import Union, List, Tuple, BinaryIO, Optional, Sequence, Dict

import numpy

from nitfmeta.io.general.base import NITFMetaIOError, NITFDecodeError, MalformedCountError
from nitfmeta.io.general.utils import is_file_like, nitf_version, NITF_PROFILES
from nitfmeta.io.general.nitf_elements.base import FieldCursor, FieldMap, BufferType, parse_int
# noinspection PyProtectedMember
from nitfmeta.io.general.nitf_elements.nitf_head import NITFHeader, _ItemArrayHeaders, \
    ImageSegmentsType, GraphicsSegmentsType, TextSegmentsType, DataExtensionsType, \
    ReservedExtensionsType
from nitfmeta.io.general.nitf_elements.image import ImageSegmentHeader
from nitfmeta.io.general.nitf_elements.graphics import GraphicsSegmentHeader
from nitfmeta.io.general.nitf_elements.text import TextSegmentHeader
from nitfmeta.io.general.nitf_elements.des import DataExtensionHeader


logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = min(32, (os.cpu_count() or 1) + 4)
"""
The default size of the worker pool used for decoding subheaders.
"""

_UNKNOWN_FILE_LENGTH = 999999999999

SEGMENT_KINDS = ('image', 'graphic', 'text', 'data_extension')
"""
The segment kinds with decoded subheaders, in file order.
"""

_SEGMENT_GROUPS = OrderedDict([
    ('image', ImageSegmentsType),
    ('graphic', GraphicsSegmentsType),
    ('text', TextSegmentsType),
    ('data_extension', DataExtensionsType)])

_SUBHEADER_TYPES = {
    'image': ImageSegmentHeader,
    'graphic': GraphicsSegmentHeader,
    'text': TextSegmentHeader,
    'data_extension': DataExtensionHeader}


#####
# decode phases

PHASE_FILE_HEADER = 'file_header'
PHASE_EXTENSION_HEADERS = 'extension_headers'
PHASE_SEGMENT_OFFSETS = 'segment_offsets'
PHASE_SUBHEADERS = 'subheaders'


@contextmanager
def _decode_phase(phase: str):
    try:
        yield
    except NITFDecodeError as e:
        if e.phase is None:
            e.phase = phase
        raise


#####
# segment offsets

class SegmentDescriptor(object):
    """
    The location of a single segment subheader.
    """

    __slots__ = ('_kind', '_index', '_offset')

    def __init__(self, kind: str, index: int, offset: int):
        """

        Parameters
        ----------
        kind : str
            One of `SEGMENT_KINDS`.
        index : int
            The 1-based segment ordinal within its kind.
        offset : int
            The byte offset of the segment subheader.
        """

        if kind not in _SUBHEADER_TYPES:
            raise ValueError('Got unhandled segment kind {}'.format(kind))
        self._kind = kind
        self._index = int(index)
        self._offset = int(offset)

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def index(self) -> int:
        return self._index

    @property
    def offset(self) -> int:
        return self._offset

    def __repr__(self):
        return 'SegmentDescriptor(kind={!r}, index={}, offset={})'.format(
            self._kind, self._index, self._offset)


def element_offsets(
        cur_loc: int,
        subhead_sizes: numpy.ndarray,
        item_sizes: numpy.ndarray) -> Tuple[int, numpy.ndarray]:
    """
    Lay out consecutive segments, each a subheader followed by its item.

    Parameters
    ----------
    cur_loc : int
        The offset of the first subheader.
    subhead_sizes : numpy.ndarray
    item_sizes : numpy.ndarray

    Returns
    -------
    next_loc : int
        The offset immediately following the final item.
    subhead_offsets : numpy.ndarray
    """

    if subhead_sizes.size == 0:
        return cur_loc, numpy.zeros((0, ), dtype=numpy.int64)

    subhead_offsets = numpy.full(subhead_sizes.shape, cur_loc, dtype=numpy.int64)
    subhead_offsets[1:] += numpy.cumsum(subhead_sizes[:-1]) + numpy.cumsum(item_sizes[:-1])
    next_loc = int(subhead_offsets[-1] + subhead_sizes[-1] + item_sizes[-1])
    return next_loc, subhead_offsets


def resolve_group_offsets(
        header_fields: FieldMap,
        group: type,
        cur_loc: int) -> Tuple[int, numpy.ndarray]:
    """
    Determine the subheader offsets for one segment group, given the location
    following the previous group.

    Parameters
    ----------
    header_fields : FieldMap
    group : type
        A segment group type, i.e. `ImageSegmentsType`.
    cur_loc : int

    Returns
    -------
    next_loc : int
    subhead_offsets : numpy.ndarray
    """

    if not issubclass(group, _ItemArrayHeaders):
        raise TypeError('Requires a segment group type, got {}'.format(group))
    subhead_sizes, item_sizes = group.get_sizes(header_fields)
    empty = numpy.nonzero(subhead_sizes == 0)[0]
    if empty.size > 0:
        raise MalformedCountError(
            'Subheader length {} is zero'.format(group.subhead_key(int(empty[0]) + 1)))
    return element_offsets(cur_loc, subhead_sizes, item_sizes)


def resolve_segment_offsets(header_fields: FieldMap) -> Tuple[List[SegmentDescriptor], int]:
    """
    Determine the subheader offset of every image, graphic, text, and data
    extension segment. The groups are laid out in that order, beginning at the
    header length, and the reserved extension segments follow.

    Parameters
    ----------
    header_fields : FieldMap
        The decoded file header.

    Returns
    -------
    descriptors : List[SegmentDescriptor]
        In file order.
    extent : int
        The offset immediately following the final segment.

    Raises
    ------
    MalformedCountError
        A length field is missing or malformed, or a subheader length is zero.
    """

    if 'HL' not in header_fields:
        raise MalformedCountError('The file header has no header length field HL')
    cur_loc = parse_int(header_fields['HL'], name='HL')
    descriptors = []
    for kind, group in _SEGMENT_GROUPS.items():
        cur_loc, subhead_offsets = resolve_group_offsets(header_fields, group, cur_loc)
        for i, offset in enumerate(subhead_offsets):
            descriptors.append(SegmentDescriptor(kind, i+1, offset))
        logger.debug('Resolved {} {} segment offsets'.format(subhead_offsets.size, kind))
    cur_loc, _ = resolve_group_offsets(header_fields, ReservedExtensionsType, cur_loc)
    return descriptors, cur_loc


#####
# subheader decoding

def _get_worker_count(max_workers: Optional[int], task_count: int) -> int:
    if max_workers is None:
        max_workers = DEFAULT_MAX_WORKERS
    max_workers = int(max_workers)
    if max_workers < 1:
        raise ValueError('max_workers must be positive, got {}'.format(max_workers))
    return max(1, min(max_workers, task_count))


def decode_subheaders(
        value: BufferType,
        descriptors: Sequence[SegmentDescriptor],
        max_workers: Optional[int] = None) -> Dict[str, List[FieldMap]]:
    """
    Decode the subheader for each segment descriptor using a bounded pool of
    workers. The results for each kind are in index order, regardless of the
    order of completion.

    Parameters
    ----------
    value : bytes
        The whole file content.
    descriptors : Sequence[SegmentDescriptor]
    max_workers : None|int
        The maximum number of workers, defaulting to `DEFAULT_MAX_WORKERS`.

    Returns
    -------
    Dict[str, List[FieldMap]]
        The subheaders, keyed by segment kind.

    Raises
    ------
    NITFDecodeError
        The failure for the earliest segment that failed. Work not yet started
        is abandoned.
    """

    results = OrderedDict((kind, []) for kind in SEGMENT_KINDS)
    if len(descriptors) == 0:
        return results

    for descriptor in descriptors:
        results[descriptor.kind].append(None)

    with ThreadPoolExecutor(max_workers=_get_worker_count(max_workers, len(descriptors))) as executor:
        futures = OrderedDict(
            (executor.submit(_SUBHEADER_TYPES[descriptor.kind].decode, value, descriptor.offset), descriptor)
            for descriptor in descriptors)
        _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        for future in not_done:
            future.cancel()

    # work already running when the first failure arrived has completed by now
    failures = [
        future for future in futures
        if not future.cancelled() and future.exception() is not None]
    if len(failures) > 0:
        first = min(failures, key=lambda entry: futures[entry].offset)
        descriptor = futures[first]
        logger.error(
            'Failed decoding the {} subheader {} at offset {}'.format(
                descriptor.kind, descriptor.index, descriptor.offset))
        raise first.exception()

    for future, descriptor in futures.items():
        results[descriptor.kind][descriptor.index - 1] = future.result()
    return results


#####
# the decoded record

class DecodedNITF(object):
    """
    The decoded file header and segment subheaders of a NITF file.
    """

    __slots__ = (
        '_file_header', '_image_subheaders', '_graphic_subheaders',
        '_text_subheaders', '_data_extension_subheaders', '_segment_offsets')

    def __init__(
            self,
            file_header: FieldMap,
            image_subheaders: Optional[List[FieldMap]] = None,
            graphic_subheaders: Optional[List[FieldMap]] = None,
            text_subheaders: Optional[List[FieldMap]] = None,
            data_extension_subheaders: Optional[List[FieldMap]] = None,
            segment_offsets: Optional[List[SegmentDescriptor]] = None):
        self._file_header = file_header
        self._image_subheaders = tuple(image_subheaders or ())
        self._graphic_subheaders = tuple(graphic_subheaders or ())
        self._text_subheaders = tuple(text_subheaders or ())
        self._data_extension_subheaders = tuple(data_extension_subheaders or ())
        self._segment_offsets = tuple(segment_offsets or ())

    @property
    def file_header(self) -> FieldMap:
        """
        FieldMap: The file header fields, including the header extension entries.
        """

        return self._file_header

    @property
    def image_subheaders(self) -> Tuple[FieldMap, ...]:
        return self._image_subheaders

    @property
    def graphic_subheaders(self) -> Tuple[FieldMap, ...]:
        return self._graphic_subheaders

    @property
    def text_subheaders(self) -> Tuple[FieldMap, ...]:
        return self._text_subheaders

    @property
    def data_extension_subheaders(self) -> Tuple[FieldMap, ...]:
        return self._data_extension_subheaders

    @property
    def segment_offsets(self) -> Tuple[SegmentDescriptor, ...]:
        """
        Tuple[SegmentDescriptor, ...]: The resolved subheader locations, in file order.
        """

        return self._segment_offsets

    def get_subheaders(self, kind: str) -> Tuple[FieldMap, ...]:
        """
        Gets the subheaders for the given segment kind.

        Parameters
        ----------
        kind : str
            One of `SEGMENT_KINDS`.

        Returns
        -------
        Tuple[FieldMap, ...]
        """

        if kind not in SEGMENT_KINDS:
            raise KeyError('Got unhandled segment kind {}'.format(kind))
        return getattr(self, '_{}_subheaders'.format(kind))

    def to_json(self) -> dict:
        """
        Get a json (i.e. dict) representation of the header elements.

        Returns
        -------
        dict
        """

        out = OrderedDict([('header', OrderedDict(self._file_header))])
        out['Image_Subheaders'] = [OrderedDict(entry) for entry in self._image_subheaders]
        out['Graphics_Subheaders'] = [OrderedDict(entry) for entry in self._graphic_subheaders]
        out['Text_Subheaders'] = [OrderedDict(entry) for entry in self._text_subheaders]
        out['DES_Subheaders'] = [OrderedDict(entry) for entry in self._data_extension_subheaders]
        return out


#####
# the orchestrator

def _check_header_consistency(
        header: FieldMap, header_length: int, consumed: int, extent: int, buffer_length: int) -> None:
    profile = header.get('FHDR', '') + header.get('FVER', '')
    if profile not in NITF_PROFILES:
        logger.warning(
            'File profile and version {} is not one of {}, but decoding will '
            'proceed using the NITF 2.1 layout'.format(profile, NITF_PROFILES))
    if consumed != header_length:
        logger.error(
            'Stated header length is {},\n\t'
            'while the interpreted header length is {}.\n\t'
            'Segment offsets are derived from the stated header length.'.format(header_length, consumed))
    file_length = parse_int(header['FL'], name='FL')
    if file_length == _UNKNOWN_FILE_LENGTH:
        return
    if file_length != buffer_length:
        logger.warning(
            'Stated file length is {}, but the buffer has length {}'.format(file_length, buffer_length))
    if extent != file_length:
        logger.warning(
            'Stated file length is {}, but the segments end at {}'.format(file_length, extent))


def decode_nitf(value: Union[BufferType, str], max_workers: Optional[int] = None) -> DecodedNITF:
    """
    Decode the file header and all image, graphic, text, and data extension
    subheaders from the complete content of a NITF file.

    Parameters
    ----------
    value : bytes|bytearray|memoryview
        The complete file content.
    max_workers : None|int
        The maximum number of workers for subheader decoding.

    Returns
    -------
    DecodedNITF

    Raises
    ------
    NITFDecodeError
        Carrying the phase and byte offset of the failure.
    """

    cursor = FieldCursor(value, 0)
    buffer = cursor.value

    with _decode_phase(PHASE_FILE_HEADER):
        header = NITFHeader.parse_fields(cursor)
    with _decode_phase(PHASE_EXTENSION_HEADERS):
        NITFHeader.parse_extension_headers(cursor, header)
    logger.debug('Decoded file header of {} bytes'.format(cursor.position))

    with _decode_phase(PHASE_SEGMENT_OFFSETS):
        header_length = parse_int(header['HL'], name='HL')
        descriptors, extent = resolve_segment_offsets(header)
        _check_header_consistency(header, header_length, cursor.position, extent, len(buffer))

    with _decode_phase(PHASE_SUBHEADERS):
        subheaders = decode_subheaders(buffer, descriptors, max_workers=max_workers)

    return DecodedNITF(
        header,
        image_subheaders=subheaders['image'],
        graphic_subheaders=subheaders['graphic'],
        text_subheaders=subheaders['text'],
        data_extension_subheaders=subheaders['data_extension'],
        segment_offsets=descriptors)


#####
# the file collaborator

class NITFDetails(object):
    """
    This class reads the complete content of a NITF 2.1 file, and decodes the
    header and subheader information.
    """

    __slots__ = ('_file_name', '_nitf_version', '_decoded')

    def __init__(self, file_object: Union[str, BinaryIO], max_workers: Optional[int] = None):
        """

        Parameters
        ----------
        file_object : str|BinaryIO
            file name for a NITF file, or file like object opened in binary mode.
        max_workers : None|int
            The maximum number of workers for subheader decoding.
        """

        self._file_name = None
        self._nitf_version = None
        self._decoded = None

        if isinstance(file_object, str):
            if not os.path.isfile(file_object):
                raise NITFMetaIOError('Path {} is not a file'.format(file_object))
            self._file_name = file_object
        elif is_file_like(file_object):
            if hasattr(file_object, 'name') and isinstance(file_object.name, str):
                self._file_name = file_object.name
            else:
                self._file_name = '<file like object>'
        else:
            raise TypeError('file_object is required to be a file like object, or string path to a file.')

        self._nitf_version = nitf_version(file_object)
        if self._nitf_version is None:
            raise NITFMetaIOError('File {} is not a NITF file'.format(self._file_name))

        if isinstance(file_object, str):
            with open(file_object, 'rb') as fi:
                the_bytes = fi.read()
        else:
            file_object.seek(0, os.SEEK_SET)
            the_bytes = file_object.read()
        logger.debug('Read {} bytes from {}'.format(len(the_bytes), self._file_name))
        self._decoded = decode_nitf(the_bytes, max_workers=max_workers)

    @property
    def file_name(self) -> Optional[str]:
        """
        None|str: the file name, which may not be useful if the input was based
        on a file like object
        """

        return self._file_name

    @property
    def nitf_version(self) -> str:
        """
        str: The NITF version number.
        """

        return self._nitf_version

    @property
    def decoded(self) -> DecodedNITF:
        """
        DecodedNITF: The decoded header information.
        """

        return self._decoded

    @property
    def nitf_header(self) -> FieldMap:
        """
        FieldMap: the nitf header fields
        """

        return self._decoded.file_header

    @property
    def img_headers(self) -> Tuple[FieldMap, ...]:
        return self._decoded.image_subheaders

    @property
    def graphics_headers(self) -> Tuple[FieldMap, ...]:
        return self._decoded.graphic_subheaders

    @property
    def text_headers(self) -> Tuple[FieldMap, ...]:
        return self._decoded.text_subheaders

    @property
    def des_headers(self) -> Tuple[FieldMap, ...]:
        return self._decoded.data_extension_subheaders

    def get_headers_json(self) -> dict:
        """
        Get a json (i.e. dict) representation of the NITF header elements.

        Returns
        -------
        dict
        """

        return self._decoded.to_json()
