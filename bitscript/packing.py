# Copyright (c) 2018-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Fixed-width little-endian and CompactSize codecs for scripts and transactions.

The read functions take a read callable, such as the read method of a BytesIO, and raise
struct.error if the stream ends early.
'''

__all__ = (
    'pack_byte', 'pack_le_int32', 'pack_le_uint32', 'pack_le_int64',
    'pack_varint', 'pack_varbytes', 'pack_list',
    'read_byte', 'read_le_int32', 'read_le_uint32', 'read_le_int64',
    'read_varint', 'read_varbytes', 'read_list',
)

from functools import partial
from struct import Struct, error as struct_error


_byte = Struct('B')
_le_uint16 = Struct('<H')
_le_int32 = Struct('<i')
_le_uint32 = Struct('<I')
_le_int64 = Struct('<q')
_le_uint64 = Struct('<Q')

# Sighash suffix, prev_idx, sequence and locktime
pack_byte = _byte.pack
pack_le_uint32 = _le_uint32.pack

# Transaction version and output values
pack_le_int32 = _le_int32.pack
pack_le_int64 = _le_int64.pack

# A varint whose first byte is one of these keys is followed by an integer of that width
_varint_wide_forms = {0xfd: _le_uint16, 0xfe: _le_uint32, 0xff: _le_uint64}


def _varint_form(n):
    if n >= 0:
        if n < 0xfd:
            return None, _byte
        for prefix, form in _varint_wide_forms.items():
            if n < 1 << (8 * form.size):
                return prefix, form
    raise ValueError(f'value {n} out of range for varint')


def pack_varint(n):
    '''Serialize an unsigned integer as a varint (CompactSize).'''
    prefix, form = _varint_form(n)
    if prefix is None:
        return form.pack(n)
    return pack_byte(prefix) + form.pack(n)


def pack_varbytes(data):
    '''Serialize binary data, such as a script, after its length as a varint.'''
    return pack_varint(len(data)) + data


def pack_list(items, pack_one):
    '''Serialize a varint count of items followed by each item packed with pack_one.'''
    return b''.join([pack_varint(len(items))] + [pack_one(item) for item in items])


def _read_exact(read, size):
    result = read(size)
    if len(result) != size:
        raise struct_error(f'stream ended with {len(result):,d} of {size:,d} bytes required')
    return result


def _read_form(form, read):
    result, = form.unpack(_read_exact(read, form.size))
    return result


read_byte = partial(_read_form, _byte)
read_le_int32 = partial(_read_form, _le_int32)
read_le_uint32 = partial(_read_form, _le_uint32)
read_le_int64 = partial(_read_form, _le_int64)


def read_varint(read):
    n = read_byte(read)
    form = _varint_wide_forms.get(n)
    if form is None:
        return n
    return _read_form(form, read)


def read_varbytes(read):
    return _read_exact(read, read_varint(read))


def read_list(read, read_one):
    '''Read a varint count of items followed by each item read with read_one.'''
    return [read_one(read) for _ in range(read_varint(read))]
