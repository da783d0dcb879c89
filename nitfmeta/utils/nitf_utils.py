"""
A utility for dumping the NITF header and subheader fields to the console.

To dump NITF header information to a text file from the command-line

>>> python -m nitfmeta.utils.nitf_utils <path to nitf file>

For a basic help on the command-line, check

>>> python -m nitfmeta.utils.nitf_utils --help

Each field is written on its own line, namespaced by section and 0-based
segment index, as in :code:`NITF::IMAGE000::IID1: value`.
"""

__classification__ = "UNCLASSIFIED"


import argparse
import logging
import os
import sys
from io import StringIO
from typing import Union, BinaryIO, TextIO, Optional

from nitfmeta.io.general.base import NITFMetaError
from nitfmeta.io.general.nitf import NITFDetails, DecodedNITF


logger = logging.getLogger(__name__)

_SECTION_NAMES = (
    ('image', 'IMAGE'),
    ('graphic', 'GRAPHIC'),
    ('text', 'TEXT'),
    ('data_extension', 'DES'))


############
# helper methods

def _filter_files(input_path):
    """
    Determine if a given input path corresponds to a NITF 2.1 file.

    Parameters
    ----------
    input_path : str

    Returns
    -------
    bool
    """

    if not os.path.isfile(input_path):
        return False
    with open(input_path, 'rb') as fi:
        check = fi.read(9)
    return check in [b'NITF02.10', b'NSIF01.00']


def _create_default_output_file(input_file, output_directory=None):
    if not isinstance(input_file, str):
        if output_directory is None:
            return os.path.expanduser('~/header_dump.txt')
        else:
            return os.path.join(output_directory, 'header_dump.txt')

    if output_directory is None:
        return os.path.splitext(input_file)[0] + '.header_dump.txt'
    else:
        return os.path.join(output_directory, os.path.splitext(os.path.split(input_file)[1])[0] + '.header_dump.txt')


############
# printing methods

def format_decoded(decoded: DecodedNITF) -> str:
    """
    Render the decoded header fields, one line per field.

    Parameters
    ----------
    decoded : DecodedNITF

    Returns
    -------
    str
    """

    lines = ['NITF::{}: {}'.format(field, value) for field, value in decoded.file_header.items()]
    for kind, section in _SECTION_NAMES:
        for index, subheader in enumerate(decoded.get_subheaders(kind)):
            lines.extend(
                'NITF::{}{:03d}::{}: {}'.format(section, index, field, value)
                for field, value in subheader.items())
    return '\n'.join(lines)


def print_nitf(file_name: Union[str, BinaryIO], dest: TextIO = sys.stdout, max_workers: Optional[int] = None) -> None:
    """
    Worker function to dump the NITF header and subheader fields to the
    provided destination.

    Parameters
    ----------
    file_name : str|BinaryIO
    dest : TextIO
    max_workers : None|int
        The maximum number of workers for subheader decoding.
    """

    details = NITFDetails(file_name, max_workers=max_workers)
    print(format_decoded(details.decoded), file=dest)


##########
# method for dumping file using the print method(s)

def dump_nitf_file(
        file_name: Union[str, BinaryIO],
        dest: str,
        over_write: bool = True,
        max_workers: Optional[int] = None) -> Optional[str]:
    """
    Utility to dump the NITF header and subheader fields to a configurable
    destination.

    Parameters
    ----------
    file_name : str|BinaryIO
        The path to or file-like object containing a NITF 2.1 file.
    dest : str
        'stdout', 'string', 'default' (will use `file_name+'.header_dump.txt'`),
        or the path to an output file.
    over_write : bool
        If `True`, then overwrite the destination file, otherwise append to the
        file.
    max_workers : None|int

    Returns
    -------
    None|str
        There is only a return value if `dest=='string'`.
    """

    if dest == 'stdout':
        print_nitf(file_name, dest=sys.stdout, max_workers=max_workers)
        return None
    if dest == 'string':
        out = StringIO()
        print_nitf(file_name, dest=out, max_workers=max_workers)
        value = out.getvalue()
        out.close()  # free the buffer
        return value

    the_out_file = _create_default_output_file(file_name) if dest == 'default' else dest
    logger.info('Writing the header dump for {} to {}'.format(file_name, the_out_file))
    if not os.path.exists(the_out_file) or over_write:
        with open(the_out_file, 'w') as the_file:
            print_nitf(file_name, dest=the_file, max_workers=max_workers)
    else:
        with open(the_out_file, 'a') as the_file:
            print_nitf(file_name, dest=the_file, max_workers=max_workers)
    return None


def main(args=None) -> int:
    parser = argparse.ArgumentParser(
        description='Utility to dump NITF 2.1 header and subheader fields.',
        formatter_class=argparse.RawTextHelpFormatter)
    parser.add_argument(
        'input_file',
        help='The path to a nitf file, or directory to search for NITF files.')
    parser.add_argument(
        '-o', '--output', default='stdout',
        help="'stdout', 'default', or the path for an output file.\n"
             "* 'stdout' will print the information to standard out.\n"
             "* 'default', the output will be at '<input path>.header_dump.txt' \n"
             "   This will be overwritten, if it exists.\n"
             "* Otherwise, "
             "     if `input_file` is a directory, this is expected to be the path to\n"
             "       an output directory for the output following the default naming scheme.\n"
             "*    if `input_file` a file path, this is expected to be the path to a file \n"
             "       and output will be written there.\n"
             "  In either case, existing output files will be overwritten.")
    parser.add_argument(
        '-w', '--workers', type=int, default=None,
        help='The maximum number of workers for decoding segment subheaders.')
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help='Log decoding details.')
    args = parser.parse_args(args)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if args.verbose:
        logging.getLogger('nitfmeta').setLevel(logging.DEBUG)

    try:
        if os.path.isdir(args.input_file):
            entries = [os.path.join(args.input_file, part) for part in os.listdir(args.input_file)]
            for entry in filter(_filter_files, entries):
                if args.output == 'stdout':
                    output = args.output
                elif args.output == 'default':
                    output = _create_default_output_file(entry, output_directory=None)
                else:
                    if not os.path.isdir(args.output):
                        raise IOError(
                            'Provided input is a directory, so provided output must '
                            'be a directory, `stdout`, or `default`.')
                    output = _create_default_output_file(entry, output_directory=args.output)
                dump_nitf_file(entry, output, max_workers=args.workers)
        else:
            dump_nitf_file(args.input_file, args.output, max_workers=args.workers)
    except (NITFMetaError, IOError) as e:
        print('Failed decoding {}: {}'.format(args.input_file, e), file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
