# Copyright (c) 2016-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Digests computed by the hashing opcodes, template hashes and the signature hash.

Each function takes a bytes-like object and returns the digest as bytes.
'''

__all__ = (
    'sha1', 'sha256', 'double_sha256', 'ripemd160', 'hash160', 'hash_to_hex_str',
)

from hashlib import sha1 as _sha1, sha256 as _sha256

from Cryptodome.Hash import RIPEMD160


def sha1(x):
    '''OP_SHA1.'''
    return _sha1(x).digest()


def sha256(x):
    '''OP_SHA256.'''
    return _sha256(x).digest()


def ripemd160(x):
    '''OP_RIPEMD160.  Taken from PyCryptodome as hashlib builds may lack it.'''
    return RIPEMD160.new(x).digest()


def double_sha256(x):
    '''OP_HASH256; also the transaction hash and the signature hash.'''
    return _sha256(_sha256(x).digest()).digest()


def hash160(x):
    '''OP_HASH160; the hash committed to by P2PKH and P2SH output scripts.'''
    return ripemd160(_sha256(x).digest())


def hash_to_hex_str(x):
    '''Display form of a double_sha256 hash such as a transaction hash: its bytes reversed,
    as hex.'''
    return x[::-1].hex()
