# Copyright (c) 2019-2024, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Byte order conversions shared by the script number and DER codecs, and logging
helpers.'''

__all__ = (
    'be_bytes_to_int', 'le_bytes_to_int', 'int_to_be_bytes', 'int_to_le_bytes',
)

import logging
from functools import partial


# DER integers are big-endian, script numbers little-endian
be_bytes_to_int = partial(int.from_bytes, byteorder='big')
le_bytes_to_int = partial(int.from_bytes, byteorder='little')


def _int_to_bytes(value, size, byteorder):
    if size is None:
        size = (value.bit_length() + 7) // 8
    return value.to_bytes(size, byteorder)


def int_to_be_bytes(value, size=None):
    '''Convert a non-negative integer to big-endian bytes, using as few bytes as possible if
    size is None.  Zero then becomes b''.  Raises OverflowError if it does not fit.'''
    return _int_to_bytes(value, size, 'big')


def int_to_le_bytes(value, size=None):
    '''As int_to_be_bytes() but little-endian.'''
    return _int_to_bytes(value, size, 'little')


class PrefixedLogger(logging.LoggerAdapter):
    '''Tags each message with a label in brackets, such as the vector file being run.'''

    def process(self, msg, kwargs):
        return f'[{self.extra}] {msg}', kwargs


def prefixed_logger(name, label):
    return PrefixedLogger(logging.getLogger(name), label)
