# Copyright (c) 2018-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Sighash types, and the DER encoding and canonical form of signatures in script.'''

__all__ = (
    'Signature', 'SigHash', 'SigHashKind', 'SigEncoding', 'TxSignature',
    'der_signature', 'is_canonical_half_order',
)

from enum import IntEnum

import attr

from .consts import CURVE_ORDER, HALF_CURVE_ORDER
from .errors import InvalidSignature, NonCanonicalSignature
from .misc import be_bytes_to_int, int_to_be_bytes
from .packing import pack_byte, pack_le_uint32


class SigEncoding(IntEnum):
    STRICT_DER = 1 << 0
    LOW_S = 1 << 1


class SigHashKind(IntEnum):
    UNKNOWN = 0
    ALL = 1
    NONE = 2
    SINGLE = 3


def _check_sighash_byte(instance, attribute, value):
    if not 0 <= value <= 255:
        raise ValueError(f'invalid sighash byte {value}')


@attr.s(slots=True, frozen=True, repr=False)
class SigHash:
    '''The signature hash type: a byte appended to a signature in script.

    The byte is retained as-is, so decoding is total over the 256 byte values and
    re-encoding is exact.  Bytes other than 0x01, 0x02, 0x03 optionally combined with
    ANYONE_CAN_PAY are of kind UNKNOWN.
    '''
    value = attr.ib(converter=int, validator=_check_sighash_byte)

    ANYONE_CAN_PAY_BIT = 0x80

    @property
    def kind(self):
        base = self.value & ~self.ANYONE_CAN_PAY_BIT
        if SigHashKind.ALL <= base <= SigHashKind.SINGLE:
            return SigHashKind(base)
        return SigHashKind.UNKNOWN

    @property
    def anyone_can_pay(self):
        '''Return True if ANYONE_CAN_PAY is set.  Unknown kinds retain the bit too.'''
        return bool(self.value & self.ANYONE_CAN_PAY_BIT)

    @property
    def base_kind(self):
        '''The kind used when hashing.  As in the node software, unknown values use their
        low five bits, and values other than NONE and SINGLE hash as ALL.'''
        base = self.value & 0x1f
        if base in (SigHashKind.NONE, SigHashKind.SINGLE):
            return SigHashKind(base)
        return SigHashKind.ALL

    @classmethod
    def from_byte(cls, value):
        return cls(value)

    @classmethod
    def from_sig_bytes(cls, sig_bytes):
        if sig_bytes:
            return cls(sig_bytes[-1])
        return cls(0)

    def to_byte(self):
        return self.value

    def to_bytes32(self):
        '''The 4-byte little-endian form hashed into the signature hash.'''
        return pack_le_uint32(self.value)

    def is_defined(self):
        '''Return True if the sighash is of a known kind.'''
        return self.kind != SigHashKind.UNKNOWN

    def with_anyone_can_pay(self):
        return SigHash(self.value | self.ANYONE_CAN_PAY_BIT)

    def to_string(self):
        kind = self.kind
        if kind == SigHashKind.UNKNOWN:
            return f'UNKNOWN(0x{self.value:02x})'
        if self.anyone_can_pay:
            return f'{kind.name}|ANYONE_CAN_PAY'
        return kind.name

    def __int__(self):
        return self.value

    def __repr__(self):
        return f'SigHash({self.to_string()})'


# Sighash values
SigHash.ALL = SigHash(0x01)
SigHash.NONE = SigHash(0x02)
SigHash.SINGLE = SigHash(0x03)


def is_canonical_half_order(s):
    '''Return True if the S value of a signature is in the lower half of the curve order.'''
    return s <= HALF_CURVE_ORDER


def _der_integer(value):
    encoding = int_to_be_bytes(value) or b'\0'
    # Prepend a zero byte so the integer is not negative
    if encoding[0] & 0x80:
        encoding = b'\0' + encoding
    return b'\x02' + pack_byte(len(encoding)) + encoding


def der_signature(r, s):
    '''Return the strict DER encoding of the signature (r, s).'''
    if not (0 <= r < CURVE_ORDER and 0 <= s < CURVE_ORDER):
        raise InvalidSignature('signature R or S value out of range')
    body = _der_integer(r) + _der_integer(s)
    return b'\x30' + pack_byte(len(body)) + body


class _LaxDERReader:
    '''Reads DER fields as ecdsa_signature_parse_der_lax() in the node software does.  The
    sequence length is not checked against its contents, and trailing bytes are ignored.'''

    def __init__(self, der_sig):
        self.der_sig = der_sig
        self.pos = 0

    def take(self, count):
        end = self.pos + count
        if end > len(self.der_sig):
            raise InvalidSignature('invalid lax DER encoding')
        result = self.der_sig[self.pos: end]
        self.pos = end
        return result

    def expect_tag(self, tag):
        if self.take(1)[0] != tag:
            raise InvalidSignature('invalid lax DER encoding')

    def length(self):
        # Long form lengths have the top bit set and give the count of length bytes
        length = self.take(1)[0]
        if length & 0x80:
            length = be_bytes_to_int(self.take(length & 0x7f))
        return length

    def integer(self):
        self.expect_tag(0x02)
        return be_bytes_to_int(self.take(self.length()))


def _is_strict_der_integer(field):
    '''field is the tag, length and value of a DER integer whose length is known to match
    its value.  The value must be non-empty, positive and without a redundant leading
    zero byte.'''
    if field[0] != 0x02 or not field[1]:
        return False
    value = field[2:]
    if value[0] & 0x80:
        return False
    return not (len(value) > 1 and value[0] == 0 and not value[1] & 0x80)


class Signature:
    '''Parsing and analysis of signatures as they appear in script.'''

    @classmethod
    def parse_lax_to_r_s(cls, der_sig, force_low_S=True):
        '''Return the pair (r, s) of a loosely-encoded DER signature.

        Raises InvalidSignature if the signature cannot be parsed.  If r or s is not below
        the curve order (0, 0) is returned.  With force_low_S a high s is replaced by its
        complement.
        '''
        reader = _LaxDERReader(der_sig)
        reader.expect_tag(0x30)
        reader.length()
        r = reader.integer()
        s = reader.integer()

        if not (r < CURVE_ORDER and s < CURVE_ORDER):
            return 0, 0
        if force_low_S and s > HALF_CURVE_ORDER:
            s = CURVE_ORDER - s
        return r, s

    @classmethod
    def to_string(cls, sig_bytes):
        '''The signature in ASM: DER hex followed by the sighash name in brackets.

        Raises InvalidSignature if the DER cannot be parsed.
        '''
        der_sig = sig_bytes[:-1]
        cls.parse_lax_to_r_s(der_sig)
        return f'{der_sig.hex()}[{cls.sighash(sig_bytes).to_string()}]'

    @classmethod
    def sighash(cls, sig_bytes):
        return SigHash.from_sig_bytes(sig_bytes)

    @classmethod
    def analyze_encoding(cls, sig_bytes):
        '''Return the SigEncoding flags that apply to sig_bytes, a signature with its
        sighash byte: 0x30 LEN 0x02 RLEN R 0x02 SLEN S SIGHASH.

        Strict DER is stricter than what libsecp256k1 accepts.  The lengths must be
        consistent and r and s positive integers without redundant leading zeroes.  Zero
        is returned if the encoding is not strict.
        '''
        size = len(sig_bytes)
        if not 9 <= size <= 73 or sig_bytes[0] != 0x30 or sig_bytes[1] != size - 3:
            return 0

        r_len = sig_bytes[3]
        if 5 + r_len >= size:
            return 0
        s_len = sig_bytes[5 + r_len]
        if 7 + r_len + s_len != size:
            return 0

        s_start = 4 + r_len
        if not (_is_strict_der_integer(sig_bytes[2: s_start])
                and _is_strict_der_integer(sig_bytes[s_start: size - 1])):
            return 0

        if is_canonical_half_order(be_bytes_to_int(sig_bytes[s_start + 2: size - 1])):
            return SigEncoding.STRICT_DER | SigEncoding.LOW_S
        return SigEncoding.STRICT_DER


@attr.s(slots=True, frozen=True)
class TxSignature:
    '''An ECDSA signature (r, s) and the sighash it commits to, as found in script.'''
    r = attr.ib()
    s = attr.ib()
    sighash = attr.ib(validator=attr.validators.instance_of(SigHash))

    @classmethod
    def from_bytes(cls, sig_bytes):
        '''Parse a signature from script, tolerating any lax DER encoding.

        Raises InvalidSignature if the DER cannot be parsed.
        '''
        if not sig_bytes:
            raise InvalidSignature('empty signature')
        r, s = Signature.parse_lax_to_r_s(sig_bytes[:-1], force_low_S=False)
        return cls(r, s, SigHash.from_sig_bytes(sig_bytes))

    @classmethod
    def from_bytes_canonical(cls, sig_bytes):
        '''Parse a signature from script requiring the canonical form: strict DER, a low S
        value and a sighash of known kind.

        Raises NonCanonicalSignature otherwise.
        '''
        encoding = Signature.analyze_encoding(sig_bytes)
        if not encoding & SigEncoding.STRICT_DER:
            raise NonCanonicalSignature('signature does not have a strict DER encoding')
        if not encoding & SigEncoding.LOW_S:
            raise NonCanonicalSignature('signature has high S value')
        sighash = SigHash.from_sig_bytes(sig_bytes)
        if not sighash.is_defined():
            raise NonCanonicalSignature(f'undefined sighash type {sighash.to_string()}')
        return cls.from_bytes(sig_bytes)

    def to_der(self):
        return der_signature(self.r, self.s)

    def to_bytes(self):
        '''The DER encoding followed by the sighash byte.'''
        return self.to_der() + pack_byte(self.sighash.to_byte())

    def is_canonical(self):
        return is_canonical_half_order(self.s) and self.sighash.is_defined()

    def to_low_s(self):
        '''Return an equivalent signature with a low S value.'''
        if self.s > HALF_CURVE_ORDER:
            return attr.evolve(self, s=CURVE_ORDER - self.s)
        return self
