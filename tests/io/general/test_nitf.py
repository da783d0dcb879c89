import io
import logging

import numpy
import pytest

from nitfmeta.io.general.base import NITFMetaIOError, TruncatedInputError, \
    MalformedCountError, MalformedTLVError, InvalidEncodingError
from nitfmeta.io.general.nitf import decode_nitf, resolve_segment_offsets, \
    element_offsets, decode_subheaders, SegmentDescriptor, DecodedNITF, NITFDetails, \
    SEGMENT_KINDS
from nitfmeta.io.general.nitf_elements.base import FieldMap
from nitfmeta.io.general.nitf_elements.nitf_head import NITFHeader

from tests import unittest
from tests.io.general import sample_nitf


def _full_file(**kwargs):
    return sample_nitf.build_nitf(
        images=[
            (sample_nitf.image_subheader(iid1='IMAGE1'), b'\x01' * 64),
            (sample_nitf.image_subheader(iid1='IMAGE2', ic='C3', comrat='00.5'), b'\x02' * 32)],
        graphics=[
            (sample_nitf.graphic_subheader('GRAPHIC1'), b'<svg/>'),
            (sample_nitf.graphic_subheader('GRAPHIC2', pad_to=20), b'')],
        texts=[(sample_nitf.text_subheader('TEXT1'), b'some text')],
        des=[
            (sample_nitf.des_subheader('XML_DATA_CONTENT'), b'<xml/>'),
            (sample_nitf.des_subheader('TRE_OVERFLOW'), b'ACFTA 00003abc')],
        reserved=[(b'RE' + b' ' * 30, b'reserved')],
        udhd=sample_nitf.tlv([('ACFTA', 'aircraft')]),
        **kwargs)


class TestSegmentOffsets(unittest.TestCase):
    def test_element_offsets(self):
        next_loc, offsets = element_offsets(
            100, numpy.array([10, 20, 30], dtype=numpy.int64), numpy.array([1, 2, 3], dtype=numpy.int64))
        self.assertEqual(offsets.tolist(), [100, 111, 133])
        self.assertEqual(next_loc, 166)

        next_loc, offsets = element_offsets(
            100, numpy.zeros((0, ), dtype=numpy.int64), numpy.zeros((0, ), dtype=numpy.int64))
        self.assertEqual(next_loc, 100)
        self.assertEqual(offsets.size, 0)

    def test_resolve(self):
        data = _full_file()
        header = NITFHeader.decode(data)
        descriptors, extent = resolve_segment_offsets(header)
        header_length = int(header['HL'])

        with self.subTest(msg='file order'):
            self.assertEqual(
                [(entry.kind, entry.index) for entry in descriptors],
                [('image', 1), ('image', 2), ('graphic', 1), ('graphic', 2), ('text', 1),
                 ('data_extension', 1), ('data_extension', 2)])

        with self.subTest(msg='first offset is the header length'):
            self.assertEqual(descriptors[0].offset, header_length)

        with self.subTest(msg='strictly increasing'):
            offsets = [entry.offset for entry in descriptors]
            for first, second in zip(offsets[:-1], offsets[1:]):
                self.assertGreater(second, first)

        with self.subTest(msg='graphic offsets follow every image'):
            image_total = sum(
                int(header[key]) for key in ['LISH001', 'LI001', 'LISH002', 'LI002'])
            self.assertEqual(descriptors[2].offset, header_length + image_total)

        with self.subTest(msg='extent'):
            self.assertEqual(extent, len(data))

        with self.subTest(msg='subheader locations'):
            for entry in descriptors:
                prefix = {'image': b'IM', 'graphic': b'SY', 'text': b'TE', 'data_extension': b'DE'}
                self.assertEqual(data[entry.offset:entry.offset + 2], prefix[entry.kind])

    def test_descriptor(self):
        entry = SegmentDescriptor('text', 1, numpy.int64(400))
        self.assertEqual(entry.offset, 400)
        self.assertIsInstance(entry.offset, int)
        with self.assertRaises(ValueError):
            SegmentDescriptor('reserved_extension', 1, 0)


class TestDecodeNITF(unittest.TestCase):
    def test_header_length_scenario(self):
        # the user defined header entries bring the header to exactly 439 bytes
        data = sample_nitf.build_nitf(
            images=[(sample_nitf.image_subheader(iid1='ONLY', pad_to=439), b'\x00' * 100)],
            udhd=sample_nitf.tlv([('TESTAA', 'x' * 21)]))
        decoded = decode_nitf(data)

        self.assertEqual(decoded.file_header['NUMI'], '001')
        self.assertEqual(decoded.file_header['LISH001'], '000439')
        self.assertEqual(decoded.file_header['LI001'], '0000000100')
        self.assertEqual(decoded.file_header['HL'], '000439')
        self.assertEqual(decoded.file_header['TESTAA'], 'x' * 21)
        self.assertEqual(len(decoded.image_subheaders), 1)
        self.assertEqual(decoded.segment_offsets[0].offset, 439)
        self.assertEqual(decoded.image_subheaders[0]['IID1'], 'ONLY')

    def test_full_file(self):
        decoded = decode_nitf(_full_file())

        with self.subTest(msg='counts'):
            for kind, count_field in [
                    ('image', 'NUMI'), ('graphic', 'NUMS'), ('text', 'NUMT'), ('data_extension', 'NUMDES')]:
                self.assertEqual(
                    len(decoded.get_subheaders(kind)), int(decoded.file_header[count_field]))

        with self.subTest(msg='index order'):
            self.assertEqual([entry['IID1'] for entry in decoded.image_subheaders], ['IMAGE1', 'IMAGE2'])
            self.assertEqual([entry['SID'] for entry in decoded.graphic_subheaders], ['GRAPHIC1', 'GRAPHIC2'])
            self.assertEqual(
                [entry['DESID'] for entry in decoded.data_extension_subheaders],
                ['XML_DATA_CONTENT', 'TRE_OVERFLOW'])
            self.assertEqual(decoded.text_subheaders[0]['TEXTID'], 'TEXT1')

        with self.subTest(msg='conditional image fields'):
            self.assertNotIn('COMRAT', decoded.image_subheaders[0])
            self.assertEqual(decoded.image_subheaders[1]['COMRAT'], '00.5')

        with self.subTest(msg='extension entries'):
            self.assertEqual(decoded.file_header['UDHOFL'], '000')
            self.assertEqual(decoded.file_header['ACFTA'], 'aircraft')

        with self.subTest(msg='no blank values'):
            for fields in [decoded.file_header] + [
                    entry for kind in SEGMENT_KINDS for entry in decoded.get_subheaders(kind)]:
                for key, value in fields.items():
                    self.assertNotEqual(value.strip(), '', msg=key)

    def test_no_segments(self):
        decoded = decode_nitf(sample_nitf.build_nitf())
        self.assertEqual(decoded.segment_offsets, ())
        for kind in SEGMENT_KINDS:
            self.assertEqual(decoded.get_subheaders(kind), ())

    def test_deterministic(self):
        data = _full_file()
        reference = decode_nitf(data).to_json()
        for max_workers in [None, 1, 2, 3, 64]:
            with self.subTest(max_workers=max_workers):
                self.assertEqual(decode_nitf(data, max_workers=max_workers).to_json(), reference)

    def test_buffer_types(self):
        data = _full_file()
        reference = decode_nitf(data).to_json()
        for value in [bytearray(data), memoryview(data)]:
            with self.subTest(value_type=type(value)):
                self.assertEqual(decode_nitf(value).to_json(), reference)

    def test_invalid_workers(self):
        with self.assertRaises(ValueError):
            decode_nitf(_full_file(), max_workers=0)

    def test_to_json(self):
        out = decode_nitf(_full_file()).to_json()
        self.assertEqual(
            list(out.keys()),
            ['header', 'Image_Subheaders', 'Graphics_Subheaders', 'Text_Subheaders', 'DES_Subheaders'])
        self.assertEqual(out['header']['FHDR'], 'NITF')
        self.assertEqual(len(out['DES_Subheaders']), 2)

    def test_get_subheaders(self):
        decoded = DecodedNITF(FieldMap([('FHDR', 'NITF')]))
        self.assertEqual(decoded.get_subheaders('image'), ())
        with self.assertRaises(KeyError):
            decoded.get_subheaders('reserved_extension')


class TestDecodeFailures(unittest.TestCase):
    def test_truncated_profile(self):
        with self.assertRaises(TruncatedInputError) as context:
            decode_nitf(b'NIT')
        self.assertEqual(context.exception.phase, 'file_header')
        self.assertEqual(context.exception.offset, 0)

    def test_malformed_header_count(self):
        data = bytearray(sample_nitf.build_nitf())
        data[360:363] = b'00A'
        with self.assertRaises(MalformedCountError) as context:
            decode_nitf(bytes(data))
        self.assertEqual(context.exception.phase, 'file_header')
        self.assertIn('phase=file_header', str(context.exception))

    def test_extension_failure(self):
        data = sample_nitf.build_nitf(udhd=b'ACFTA 00009abc')
        with self.assertRaises(MalformedTLVError) as context:
            decode_nitf(data)
        self.assertEqual(context.exception.phase, 'extension_headers')

    def test_invalid_subheader(self):
        data = sample_nitf.build_nitf(
            images=[(sample_nitf.image_subheader(), b'')],
            des=[(sample_nitf.des_subheader(b'\xff\xfeBAD'), b'')])
        descriptors, _ = resolve_segment_offsets(NITFHeader.decode(data))
        with self.assertRaises(InvalidEncodingError) as context:
            decode_nitf(data)
        self.assertEqual(context.exception.phase, 'subheaders')
        self.assertEqual(context.exception.offset, descriptors[-1].offset + 2)

    def test_truncated_subheader(self):
        data = _full_file()
        descriptors, _ = resolve_segment_offsets(NITFHeader.decode(data))
        last = descriptors[-1]
        with self.assertRaises(TruncatedInputError) as context:
            decode_nitf(data[:last.offset + 5])
        self.assertEqual(context.exception.phase, 'subheaders')
        self.assertEqual(context.exception.offset, last.offset + 2)

    def test_earliest_failure_single_worker(self):
        data = sample_nitf.build_nitf(
            images=[(sample_nitf.image_subheader(iid1=b'\xffBAD'), b'')],
            texts=[(sample_nitf.text_subheader(b'\xffBAD'), b'')])
        descriptors, _ = resolve_segment_offsets(NITFHeader.decode(data))
        with self.assertRaises(InvalidEncodingError) as context:
            decode_nitf(data, max_workers=1)
        self.assertEqual(context.exception.offset, descriptors[0].offset + 2)

    def test_decode_subheaders(self):
        data = _full_file()
        descriptors, _ = resolve_segment_offsets(NITFHeader.decode(data))
        results = decode_subheaders(data, list(reversed(descriptors)), max_workers=2)
        self.assertEqual(list(results.keys()), list(SEGMENT_KINDS))
        self.assertEqual([entry['IID1'] for entry in results['image']], ['IMAGE1', 'IMAGE2'])


class TestConsistencyLogging(unittest.TestCase):
    def test_unknown_profile(self):
        with self.assertLogs('nitfmeta', level='WARNING') as context:
            decoded = decode_nitf(sample_nitf.build_nitf(profile=b'NITF02.00'))
        self.assertEqual(decoded.file_header['FVER'], '02.00')
        self.assertTrue(any('02.00' in entry for entry in context.output))

    def test_header_length_mismatch(self):
        with self.assertLogs('nitfmeta', level='ERROR'):
            decoded = decode_nitf(
                sample_nitf.build_nitf(header_length=sample_nitf.HEADER_FIXED_LENGTH + 12))
        self.assertEqual(decoded.file_header['HL'], '000400')

    def test_file_length_mismatch(self):
        with self.assertLogs('nitfmeta', level='WARNING'):
            decode_nitf(sample_nitf.build_nitf(file_length=12345))


def test_unknown_file_length(caplog):
    with caplog.at_level(logging.WARNING, logger='nitfmeta'):
        decode_nitf(_full_file(file_length=999999999999))
    assert len([record for record in caplog.records if record.levelno >= logging.WARNING]) == 0


class TestNITFDetails(unittest.TestCase):
    def test_file_like(self):
        data = _full_file()
        details = NITFDetails(io.BytesIO(data), max_workers=2)
        self.assertEqual(details.nitf_version, '02.10')
        self.assertEqual(details.file_name, '<file like object>')
        self.assertEqual(details.nitf_header['FHDR'], 'NITF')
        self.assertEqual(len(details.img_headers), 2)
        self.assertEqual(len(details.graphics_headers), 2)
        self.assertEqual(len(details.text_headers), 1)
        self.assertEqual(len(details.des_headers), 2)
        self.assertEqual(details.get_headers_json(), decode_nitf(data).to_json())

    def test_not_nitf(self):
        with self.assertRaises(NITFMetaIOError):
            NITFDetails(io.BytesIO(b'GIF89a' + b'\x00' * 100))
        with self.assertRaises(NITFMetaIOError):
            NITFDetails(io.BytesIO(b'NITF'))

    def test_invalid_input(self):
        with self.assertRaises(TypeError):
            NITFDetails(12)


def test_details_from_path(tmp_path):
    the_file = tmp_path / 'example.ntf'
    the_file.write_bytes(_full_file())
    details = NITFDetails(str(the_file))
    assert details.file_name == str(the_file)
    assert [entry['IID1'] for entry in details.img_headers] == ['IMAGE1', 'IMAGE2']
    assert details.decoded.segment_offsets[0].offset == int(details.nitf_header['HL'])


def test_details_missing_path(tmp_path):
    with pytest.raises(NITFMetaIOError):
        NITFDetails(str(tmp_path / 'missing.ntf'))


def test_details_truncated_file(tmp_path):
    the_file = tmp_path / 'truncated.ntf'
    the_file.write_bytes(_full_file()[:200])
    with pytest.raises(TruncatedInputError):
        NITFDetails(str(the_file))


class TestMalformedLayout(unittest.TestCase):
    def test_blank_identifiers(self):
        data = sample_nitf.build_nitf(
            graphics=[(sample_nitf.graphic_subheader(sid=''), b'')],
            texts=[(sample_nitf.text_subheader(textid=''), b'')],
            des=[(sample_nitf.des_subheader(desid=''), b'')])
        decoded = decode_nitf(data)
        self.assertEqual(len(decoded.graphic_subheaders), 1)
        for kind in SEGMENT_KINDS:
            for fields in decoded.get_subheaders(kind):
                for key, value in fields.items():
                    self.assertNotEqual(value.strip(), '', msg=key)
        self.assertNotIn('SID', decoded.graphic_subheaders[0])
        self.assertNotIn('TEXTID', decoded.text_subheaders[0])

    def test_extension_entry_named_count(self):
        data = sample_nitf.build_nitf(
            images=[(sample_nitf.image_subheader(), b'\x00' * 8)],
            udhd=sample_nitf.tlv([('NUMI', '000')]))
        with self.assertRaises(MalformedTLVError) as context:
            decode_nitf(data)
        self.assertEqual(context.exception.phase, 'extension_headers')

    def test_missing_header_length(self):
        header = NITFHeader.decode(sample_nitf.build_nitf())
        del header['HL']
        with self.assertRaises(MalformedCountError):
            resolve_segment_offsets(header)

    def test_zero_subheader_length(self):
        data = sample_nitf.build_nitf(
            graphics=[(b'', b''), (sample_nitf.graphic_subheader('GRAPHIC2'), b'')])
        with self.assertRaises(MalformedCountError) as context:
            decode_nitf(data)
        self.assertEqual(context.exception.phase, 'segment_offsets')
        self.assertIn('LSSH001', str(context.exception))

    def test_zero_reserved_subheader_length(self):
        with self.assertRaises(MalformedCountError):
            resolve_segment_offsets(NITFHeader.decode(sample_nitf.build_nitf(reserved=[(b'', b'data')])))
