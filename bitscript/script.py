# Copyright (c) 2018-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Bitcoin script: opcodes, push encodings, script numbers and the Script wrapper.'''


__all__ = (
    'Ops', 'Script', 'ScriptIterator', 'PushData', 'PushDataType',
    'push_item', 'push_int', 'item_to_int', 'int_to_item', 'is_item_minimally_encoded',
    'minimal_push_opcode', 'cast_to_bool',
    'encode_int', 'decode_int', 'encode_bool', 'decode_bool',
)

from enum import IntEnum

import attr

from .consts import INT32_MAX
from .errors import TruncatedScriptError, ScriptError, InvalidSignature
from .misc import int_to_le_bytes, le_bytes_to_int
from .packing import pack_byte
from .signature import Signature


class Ops(IntEnum):
    '''Opcodes by their names circa 2014.  Opcodes up to OP_16 push data.'''
    OP_0 = 0x00
    OP_FALSE = OP_0
    OP_PUSHDATA1 = 0x4c
    OP_PUSHDATA2 = 0x4d
    OP_PUSHDATA4 = 0x4e
    OP_1NEGATE = 0x4f
    OP_RESERVED = 0x50
    OP_1 = 0x51
    OP_TRUE = OP_1
    OP_2 = 0x52
    OP_3 = 0x53
    OP_4 = 0x54
    OP_5 = 0x55
    OP_6 = 0x56
    OP_7 = 0x57
    OP_8 = 0x58
    OP_9 = 0x59
    OP_10 = 0x5a
    OP_11 = 0x5b
    OP_12 = 0x5c
    OP_13 = 0x5d
    OP_14 = 0x5e
    OP_15 = 0x5f
    OP_16 = 0x60

    # control; OP_VERIF and OP_VERNOTIF fail even when not executed
    OP_NOP = 0x61
    OP_VER = 0x62
    OP_IF = 0x63
    OP_NOTIF = 0x64
    OP_VERIF = 0x65
    OP_VERNOTIF = 0x66
    OP_ELSE = 0x67
    OP_ENDIF = 0x68
    OP_VERIFY = 0x69
    OP_RETURN = 0x6a

    # stack ops
    OP_TOALTSTACK = 0x6b
    OP_FROMALTSTACK = 0x6c
    OP_2DROP = 0x6d
    OP_2DUP = 0x6e
    OP_3DUP = 0x6f
    OP_2OVER = 0x70
    OP_2ROT = 0x71
    OP_2SWAP = 0x72
    OP_IFDUP = 0x73
    OP_DEPTH = 0x74
    OP_DROP = 0x75
    OP_DUP = 0x76
    OP_NIP = 0x77
    OP_OVER = 0x78
    OP_PICK = 0x79
    OP_ROLL = 0x7a
    OP_ROT = 0x7b
    OP_SWAP = 0x7c
    OP_TUCK = 0x7d

    # splice ops; all but OP_SIZE are disabled
    OP_CAT = 0x7e
    OP_SUBSTR = 0x7f
    OP_LEFT = 0x80
    OP_RIGHT = 0x81
    OP_SIZE = 0x82

    # bit logic; OP_INVERT, OP_AND, OP_OR and OP_XOR are disabled
    OP_INVERT = 0x83
    OP_AND = 0x84
    OP_OR = 0x85
    OP_XOR = 0x86
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88
    OP_RESERVED1 = 0x89
    OP_RESERVED2 = 0x8a

    # numeric; operands are script numbers.  Multiplication, division and shifts are
    # disabled
    OP_1ADD = 0x8b
    OP_1SUB = 0x8c
    OP_2MUL = 0x8d
    OP_2DIV = 0x8e
    OP_NEGATE = 0x8f
    OP_ABS = 0x90
    OP_NOT = 0x91
    OP_0NOTEQUAL = 0x92

    OP_ADD = 0x93
    OP_SUB = 0x94
    OP_MUL = 0x95
    OP_DIV = 0x96
    OP_MOD = 0x97
    OP_LSHIFT = 0x98
    OP_RSHIFT = 0x99

    OP_BOOLAND = 0x9a
    OP_BOOLOR = 0x9b
    OP_NUMEQUAL = 0x9c
    OP_NUMEQUALVERIFY = 0x9d
    OP_NUMNOTEQUAL = 0x9e
    OP_LESSTHAN = 0x9f
    OP_GREATERTHAN = 0xa0
    OP_LESSTHANOREQUAL = 0xa1
    OP_GREATERTHANOREQUAL = 0xa2
    OP_MIN = 0xa3
    OP_MAX = 0xa4

    OP_WITHIN = 0xa5

    # crypto
    OP_RIPEMD160 = 0xa6
    OP_SHA1 = 0xa7
    OP_SHA256 = 0xa8
    OP_HASH160 = 0xa9
    OP_HASH256 = 0xaa
    OP_CODESEPARATOR = 0xab
    OP_CHECKSIG = 0xac
    OP_CHECKSIGVERIFY = 0xad
    OP_CHECKMULTISIG = 0xae
    OP_CHECKMULTISIGVERIFY = 0xaf

    # expansion; fail under REJECT_UPGRADEABLE_NOPS
    OP_NOP1 = 0xb0
    OP_NOP2 = 0xb1
    OP_NOP3 = 0xb2
    OP_NOP4 = 0xb3
    OP_NOP5 = 0xb4
    OP_NOP6 = 0xb5
    OP_NOP7 = 0xb6
    OP_NOP8 = 0xb7
    OP_NOP9 = 0xb8
    OP_NOP10 = 0xb9


# pylint:disable=E0602,E1101

globals().update(Ops.__members__)
__all__ += tuple(Ops.__members__.keys())

b_OP_0 = pack_byte(Ops.OP_0)
b_OP_1NEGATE = pack_byte(Ops.OP_1NEGATE)
b_OP_CODESEPARATOR = pack_byte(Ops.OP_CODESEPARATOR)
bool_items = [b'', b'\1']
_op_values = frozenset(op.value for op in Ops)


class PushDataType(IntEnum):
    '''How the length of pushed data is encoded.'''
    DIRECT = 0
    PUSHDATA1 = OP_PUSHDATA1
    PUSHDATA2 = OP_PUSHDATA2
    PUSHDATA4 = OP_PUSHDATA4

    @classmethod
    def minimal_for_length(cls, dlen):
        if dlen < OP_PUSHDATA1:
            return cls.DIRECT
        if dlen <= 0xff:
            return cls.PUSHDATA1
        if dlen <= 0xffff:
            return cls.PUSHDATA2
        if dlen <= 0xffffffff:
            return cls.PUSHDATA4
        raise ValueError('item is too large')

    def length_width(self):
        '''The number of little-endian bytes holding the data length after the opcode.'''
        return _push_length_widths[self]


_push_length_widths = {
    PushDataType.DIRECT: 0,
    PushDataType.PUSHDATA1: 1,
    PushDataType.PUSHDATA2: 2,
    PushDataType.PUSHDATA4: 4,
}


def _check_push_data(instance, attribute, value):
    dlen = len(instance.data)
    if value == PushDataType.DIRECT:
        if dlen == 0:
            raise ValueError('a direct push of no data is OP_0')
        limit = OP_PUSHDATA1 - 1
    else:
        limit = (1 << (8 * value.length_width())) - 1
    if dlen > limit:
        raise ValueError(f'{dlen:,d} bytes cannot be pushed with {value.name}')


@attr.s(slots=True, frozen=True, repr=False)
class PushData:
    '''A push-data operation: the data and the encoding of its length.'''
    data = attr.ib(converter=bytes)
    encoding = attr.ib(converter=PushDataType, validator=_check_push_data)

    @classmethod
    def minimal(cls, data):
        '''The push of data using the shortest length encoding.'''
        return cls(data, PushDataType.minimal_for_length(len(data)))

    def is_minimal(self):
        '''True if the length is encoded as compactly as possible.  Note that single-byte
        items that can be pushed with a single opcode are never minimal as PushData.'''
        if len(self.data) == 1 and minimal_push_opcode(self.data) != 1:
            return False
        return self.encoding == PushDataType.minimal_for_length(len(self.data))

    def to_bytes(self):
        dlen = len(self.data)
        encoding = self.encoding
        if encoding == PushDataType.DIRECT:
            return pack_byte(dlen) + self.data
        return pack_byte(encoding) + int_to_le_bytes(dlen, encoding.length_width()) + self.data

    def __repr__(self):
        return f'PushData({self.data.hex()!r}, {self.encoding.name})'


def _single_opcode(item):
    '''The opcode that pushes item without data following it, or None.'''
    if not item:
        return OP_0
    if len(item) == 1:
        value = item[0]
        if 1 <= value <= 16:
            return OP_1 + value - 1
        if value == 0x81:
            return OP_1NEGATE
    return None


def push_item(item):
    '''Returns script bytes to push item on the stack with its minimal push.'''
    op = _single_opcode(item)
    if op is None:
        return PushData.minimal(item).to_bytes()
    return pack_byte(op)


def push_int(value):
    '''Returns script bytes to push a numerical value to the stack.'''
    return push_item(int_to_item(value))


def minimal_push_opcode(item):
    '''Returns the opcode that minimally pushes item on the stack.  Returns an int.'''
    op = _single_opcode(item)
    if op is None:
        encoding = PushDataType.minimal_for_length(len(item))
        op = len(item) if encoding == PushDataType.DIRECT else encoding
    return int(op)


#
# Script numbers are little-endian sign-magnitude: the top bit of the final byte is the
# sign.  Zero is the empty item.
#

def item_to_int(item):
    '''Returns the value of a stack item interpreted as an integer.  No range check.'''
    if not item:
        return 0
    sign_bit = 0x80 << (8 * (len(item) - 1))
    value = le_bytes_to_int(item)
    if value & sign_bit:
        return -(value ^ sign_bit)
    return value


def int_to_item(value, size=None):
    '''Returns an encoded stack item of an integer.  If size is None this is minimally
    encoded, otherwise it is padded to that many bytes, raising ValueError if it does not
    fit.
    '''
    value = int(value)
    magnitude = abs(value)
    # A byte more than the magnitude needs if its top bit would collide with the sign
    min_size = (magnitude.bit_length() + 8) // 8 if magnitude else 0
    if size is None:
        size = min_size
    elif size < min_size:
        raise ValueError(f'value cannot be encoded in {size:,d} bytes')
    if value < 0:
        magnitude |= 0x80 << (8 * (size - 1))
    return int_to_le_bytes(magnitude, size)


def encode_int(value):
    '''Minimal script-number encoding of value.  Zero encodes as empty bytes.'''
    return int_to_item(value)


def decode_int(item):
    '''Decode a script number; return None if its magnitude exceeds 0x7fffffff.'''
    value = item_to_int(item)
    if -INT32_MAX <= value <= INT32_MAX:
        return value
    return None


def is_item_minimally_encoded(item):
    '''Return True if item is a number without excess trailing bytes.'''
    return int_to_item(item_to_int(item)) == item


def cast_to_bool(item):
    '''Cast an item to a Python boolean.  False if empty or zero, including negative zero.

    Because the item is not converted to an integer, no restriction is placed on its size.
    '''
    return any(item[:-1]) or bool(item) and item[-1] & 0x7f != 0


decode_bool = cast_to_bool


def encode_bool(value):
    '''Script encoding of a boolean.'''
    return bool_items[bool(value)]


def _to_bytes(item):
    '''The script bytes that append item: an opcode, a number, data, a PushData or a
    Script.'''
    if isinstance(item, Ops):
        return pack_byte(item)
    if isinstance(item, int):
        return push_int(item)
    if isinstance(item, (bytes, bytearray)):
        return push_item(item)
    if isinstance(item, (Script, PushData)):
        return item.to_bytes()
    raise TypeError(f'cannot append {item!r} to a script')


class ScriptIterator:
    '''Steps through raw script a single operation at a time, tracking the last executed
    OP_CODESEPARATOR so the script code for signature checks can be recovered.'''

    def __init__(self, script):
        self._raw = bytes(script)
        self._n = 0
        self._cs = 0

    def position(self):
        '''Offset of the next operation to be decoded.'''
        return self._n

    def script_code(self):
        '''The script from just after the last executed OP_CODESEPARATOR.'''
        return Script(self._raw[self._cs:])

    def on_code_separator(self):
        self._cs = self._n

    def ops_and_items(self):
        '''Yield (op, item) pairs until the script is exhausted.

        op is an int as not every byte is a member of Ops.  item is the bytes the operation
        pushes, or None for OP_RESERVED and opcodes that push nothing.

        Raises TruncatedScriptError if a push overruns the script.
        '''
        raw = self._raw
        end = len(raw)
        n = self._n

        while n < end:
            op = raw[n]
            n += 1
            item = None

            if op <= OP_PUSHDATA4:
                if op < OP_PUSHDATA1:
                    size = op
                else:
                    width = PushDataType(op).length_width()
                    if n + width > end:
                        raise TruncatedScriptError(f'truncated length of {Ops(op).name}')
                    size = le_bytes_to_int(raw[n: n + width])
                    n += width
                if n + size > end:
                    raise TruncatedScriptError(f'push of {size:,d} bytes has only '
                                               f'{end - n:,d} bytes remaining')
                item = raw[n: n + size]
                n += size
            elif OP_1 <= op <= OP_16:
                item = pack_byte(op - OP_1 + 1)
            elif op == OP_1NEGATE:
                item = b'\x81'

            self._n = n
            yield op, item


class Script:
    '''An immutable wrapper of raw script bytes.  The bytes need not decode; methods that
    decode raise TruncatedScriptError or report the truncation as documented.'''

    def __init__(self, script=b''):
        self._script = bytes(script)

    def __lshift__(self, item):
        '''Return a new script with item appended.  See push_many().'''
        return Script(self._script + _to_bytes(item))

    def push_many(self, items):
        '''Return a new script with each of items appended.

        An item is pushed if it is bytes or an int; an Ops member is appended as an opcode,
        and a PushData or Script as its bytes.
        '''
        return Script(self._script + b''.join(_to_bytes(item) for item in items))

    def __len__(self):
        return len(self._script)

    def __bytes__(self):
        return self._script

    def __str__(self):
        return self.to_hex()

    def __repr__(self):
        return f'Script<"{self.to_hex()}">'

    def __hash__(self):
        return hash(self._script)

    def __eq__(self, other):
        '''Equal to a Script, or any bytes-like object, with the same bytes.'''
        if isinstance(other, (bytes, bytearray, memoryview)) or hasattr(other, '__bytes__'):
            return self._script == bytes(other)
        return False

    def ops_and_items(self):
        '''A generator of (op, item) pairs; see ScriptIterator.ops_and_items().'''
        return ScriptIterator(self._script).ops_and_items()

    def ops(self):
        '''A generator yielding the item pushed, as bytes, for push operations and the opcode
        as an int otherwise.  OP_RESERVED yields its opcode.

        Raises TruncatedScriptError if a push overruns the script.
        '''
        for op, item in self.ops_and_items():
            yield op if item is None else item

    def decode_ops(self):
        '''The script as a list of operations.  Opcodes 0x01 to OP_PUSHDATA4 become
        PushData objects; anything else is its Ops member, or a plain int for bytes that are
        not one.

        Raises TruncatedScriptError if a push overruns the script.
        '''
        def operation(op, item):
            if OP_0 < op <= OP_PUSHDATA4:
                encoding = PushDataType.DIRECT if op < OP_PUSHDATA1 else PushDataType(op)
                return PushData(item, encoding)
            return Ops(op) if op in _op_values else op

        return [operation(op, item) for op, item in self.ops_and_items()]

    @classmethod
    def from_ops(cls, ops):
        '''Build a script from operations as returned by decode_ops().  Any int from 0 to
        255 is accepted as an opcode.'''
        return cls(b''.join(op.to_bytes() if isinstance(op, PushData) else pack_byte(op)
                            for op in ops))

    def is_push_only(self):
        '''True if every operation is OP_16 or below.  OP_RESERVED counts as a push; a
        truncated script is not push-only.'''
        try:
            return all(op <= OP_16 for op, _item in self.ops_and_items())
        except TruncatedScriptError:
            return False

    def is_minimal_push_only(self):
        '''True if every operation pushes data using its minimal encoding.  OP_RESERVED
        pushes nothing; a truncated script does not qualify.'''
        try:
            return all(item is not None and op == minimal_push_opcode(item)
                       for op, item in self.ops_and_items())
        except TruncatedScriptError:
            return False

    def is_P2SH(self):
        '''True for OP_HASH160 <20 bytes> OP_EQUAL.'''
        raw = self._script
        return (len(raw) == 23 and raw[0] == OP_HASH160 and raw[1] == 20
                and raw[22] == OP_EQUAL)

    def find_and_delete(self, subscript):
        '''Return a copy of the script with each occurrence of subscript that starts on an
        operation boundary removed.  Occurrences may not overlap.

        Scanning stops at a truncated push; the remaining bytes are kept.
        '''
        assert isinstance(subscript, Script)
        raw, pattern = self._script, subscript._script
        if not pattern:
            return Script(raw)

        kept = []
        kept_from = boundary = 0
        iterator = ScriptIterator(raw)
        try:
            for _op_item in iterator.ops_and_items():
                if boundary >= kept_from and raw.startswith(pattern, boundary):
                    kept.append(raw[kept_from: boundary])
                    kept_from = boundary + len(pattern)
                boundary = iterator.position()
        except TruncatedScriptError:
            pass
        kept.append(raw[kept_from:])
        return Script(b''.join(kept))

    def without_code_separators(self):
        return self.find_and_delete(Script(b_OP_CODESEPARATOR))

    @classmethod
    def op_to_asm_word(cls, op, decode_sighash):
        '''The ASM word for op, an element of ops().

        Items of up to 4 bytes are shown as decimal numbers, which covers OP_0 to OP_16 and
        OP_1NEGATE.  If decode_sighash is true, an item that decodes as a signature is shown
        with its sighash name.  Other items are shown in hex.
        '''
        if isinstance(op, bytes):
            if len(op) <= 4:
                return str(item_to_int(op))
            if decode_sighash and op[0] == 0x30:
                try:
                    return Signature.to_string(op)
                except InvalidSignature:
                    pass
            return op.hex()
        if op in _op_values:
            return Ops(op).name
        return 'OP_INVALIDOPCODE' if op == 0xff else 'OP_UNKNOWN'

    def to_asm(self, decode_sighash=False, truncated_word='[script error]'):
        '''The script in ASM form, space-separated words as shown by bitcoind.  A truncated
        script ends with truncated_word.
        '''
        words = []
        try:
            for op in self.ops():
                words.append(self.op_to_asm_word(op, decode_sighash))
        except TruncatedScriptError:
            words.append(truncated_word)
        return ' '.join(words)

    def to_bytes(self):
        return self._script

    def to_hex(self):
        return self._script.hex()

    @classmethod
    def from_hex(cls, hex_str):
        '''The script with the given hex encoding.

        Raises ValueError unless hex_str is pure hex; whitespace separates ASM words so it
        is rejected here.
        '''
        raw = bytes.fromhex(hex_str)
        if raw.hex() != hex_str:
            raise ValueError('hex_str is not pure hexadecimal')
        return cls(raw)

    @classmethod
    def asm_word_to_bytes(cls, word):
        '''The script bytes for an ASM word: an opcode name, a decimal number within the
        script number range, or hex data to push.

        Raises ScriptError for anything else.
        '''
        if word.startswith('OP_'):
            try:
                return pack_byte(Ops[word])
            except KeyError:
                raise ScriptError(f'unrecognized op code {word}') from None
        digits = word[1:] if word.startswith('-') else word
        if digits.isdigit() and abs(int(word)) <= INT32_MAX:
            return push_int(int(word))
        try:
            return push_item(bytes.fromhex(word))
        except ValueError:
            raise ScriptError(f'invalid pushdata {word}') from None

    @classmethod
    def from_asm(cls, asm):
        '''Parse whitespace-separated ASM words.  Raises ScriptError on a bad word.'''
        return cls(b''.join(cls.asm_word_to_bytes(word) for word in asm.split()))

    @classmethod
    def from_text(cls, text):
        '''Parse text as hex if it is pure hex, and as ASM otherwise.

        Raises ScriptError if the text is neither.
        '''
        try:
            return cls.from_hex(text)
        except ValueError:
            pass
        return cls.from_asm(text)
