# Copyright (c) 2019-2021, Neil Booth
#
# All right reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#


'''Script classifications: standard output and input templates.'''

__all__ = (
    'P2PKH_Output', 'P2SH_Output', 'P2PK_Output', 'P2MultiSig_Output', 'Unknown_Output',
    'P2PKH_Input', 'P2PK_Input', 'P2MultiSig_Input', 'P2SH_Input', 'Unknown_Input',
    'classify_output_script', 'classify_input_script', 'sort_multisig', 'is_public_key',
)

import re

import attr

from .errors import InvalidSignature, TruncatedScriptError
from .hashes import hash160 as calc_hash160
from .packing import pack_byte
from .script import Script, Ops, push_item, push_int, item_to_int
from .signature import TxSignature


MAX_MULTISIG_KEYS = 16


def is_public_key(public_key):
    '''Return True if public_key has the structure of a serialized public key: 33 bytes
    with a 0x02 or 0x03 prefix, or 65 bytes with a 0x04 prefix.'''
    if len(public_key) == 33:
        return public_key[0] in (2, 3)
    if len(public_key) == 65:
        return public_key[0] == 4
    return False


def _validate_hash160(instance, attribute, value):
    if len(value) != 20:
        raise ValueError(f'{attribute.name} must be 20 bytes')


def _validate_public_key(instance, attribute, value):
    if not is_public_key(value):
        raise ValueError(f'invalid public key: {value.hex()}')


def _validate_public_keys(instance, attribute, value):
    for public_key in value:
        _validate_public_key(instance, attribute, public_key)


def _validate_threshold(instance, attribute, value):
    n = len(instance.public_keys)
    if not 1 <= value <= n <= MAX_MULTISIG_KEYS:
        raise ValueError(f'threshold {value} is invalid with {n} public keys')


def _tuple_of_bytes(items):
    return tuple(bytes(item) for item in items)


#
# Outputs
#

class _Output:

    __slots__ = ()

    def to_script(self):
        return Script(self.to_script_bytes())

    def script_hash(self):
        '''The hash160 of the script; the hash a P2SH output to it commits to.'''
        return calc_hash160(self.to_script_bytes())


@attr.s(slots=True, frozen=True)
class P2PKH_Output(_Output):
    '''OP_DUP OP_HASH160 <hash160> OP_EQUALVERIFY OP_CHECKSIG'''
    hash160 = attr.ib(converter=bytes, validator=_validate_hash160)

    def to_script_bytes(self):
        return b''.join((
            bytes((Ops.OP_DUP, Ops.OP_HASH160)),
            push_item(self.hash160),
            bytes((Ops.OP_EQUALVERIFY, Ops.OP_CHECKSIG)),
        ))

    @classmethod
    def from_public_key(cls, public_key):
        return cls(calc_hash160(public_key))


@attr.s(slots=True, frozen=True)
class P2SH_Output(_Output):
    '''OP_HASH160 <hash160> OP_EQUAL'''
    hash160 = attr.ib(converter=bytes, validator=_validate_hash160)

    def to_script_bytes(self):
        return b''.join((
            pack_byte(Ops.OP_HASH160),
            push_item(self.hash160),
            pack_byte(Ops.OP_EQUAL),
        ))

    @classmethod
    def from_redeem_script(cls, redeem_script):
        return cls(calc_hash160(bytes(redeem_script)))


@attr.s(slots=True, frozen=True)
class P2PK_Output(_Output):
    '''<public_key> OP_CHECKSIG'''
    public_key = attr.ib(converter=bytes, validator=_validate_public_key)

    def to_script_bytes(self):
        return push_item(self.public_key) + pack_byte(Ops.OP_CHECKSIG)


@attr.s(slots=True, frozen=True)
class P2MultiSig_Output(_Output):
    '''<threshold> <public_key> ... <n> OP_CHECKMULTISIG'''
    public_keys = attr.ib(converter=_tuple_of_bytes, validator=_validate_public_keys)
    threshold = attr.ib(validator=_validate_threshold)

    def to_script_bytes(self):
        parts = [push_int(self.threshold)]
        parts.extend(push_item(public_key) for public_key in self.public_keys)
        parts.append(push_int(len(self.public_keys)))
        parts.append(pack_byte(Ops.OP_CHECKMULTISIG))
        return b''.join(parts)

    def public_key_count(self):
        return len(self.public_keys)

    def sorted(self):
        '''Return a copy with the public keys in ascending order of their serialization.'''
        return attr.evolve(self, public_keys=sorted(self.public_keys))

    @classmethod
    def from_template(cls, *items):
        threshold, *public_keys, count = items
        n = len(public_keys)
        count = item_to_int(count)
        if count != n:
            raise ValueError(f'received {n} public keys but {count} as their count')
        return cls(public_keys, item_to_int(threshold))


@attr.s(slots=True, frozen=True)
class Unknown_Output(_Output):
    '''A script matching no standard output template.  The raw script is retained.'''
    script = attr.ib(converter=Script)

    def to_script_bytes(self):
        return bytes(self.script)


def sort_multisig(output):
    '''Return the multisig output with its public keys in canonical (sorted) order.'''
    return output.sorted()


#
# Inputs
#

@attr.s(slots=True, frozen=True)
class P2PKH_Input:
    '''<signature> <public_key>'''
    signature = attr.ib(validator=attr.validators.instance_of(TxSignature))
    public_key = attr.ib(converter=bytes, validator=_validate_public_key)

    def to_script(self):
        return Script().push_many((self.signature.to_bytes(), self.public_key))

    def matches(self, output):
        return isinstance(output, P2PKH_Output)


@attr.s(slots=True, frozen=True)
class P2PK_Input:
    '''<signature>'''
    signature = attr.ib(validator=attr.validators.instance_of(TxSignature))

    def to_script(self):
        return Script() << self.signature.to_bytes()

    def matches(self, output):
        return isinstance(output, P2PK_Output)


def _validate_required(instance, attribute, value):
    count = len(instance.signatures)
    if not 1 <= value <= MAX_MULTISIG_KEYS or count > value:
        raise ValueError(f'{count} signatures is invalid with {value} required')


@attr.s(slots=True, frozen=True)
class P2MultiSig_Input:
    '''OP_0 <signature> ... with OP_0 placeholders for signatures not yet present, so that
    the script has as many items after the dummy as are required.'''
    signatures = attr.ib(converter=tuple)
    required = attr.ib(validator=_validate_required)

    def to_script(self):
        items = [b'']
        items.extend(signature.to_bytes() for signature in self.signatures)
        items.extend(b'' for _ in range(self.required - len(self.signatures)))
        return Script().push_many(items)

    def matches(self, output):
        return (isinstance(output, P2MultiSig_Output)
                and self.required == output.threshold)

    @classmethod
    def from_template(cls, dummy, *items):
        if dummy:
            raise ValueError('multisig dummy item is not empty')
        signatures = [TxSignature.from_bytes(item) for item in items if item]
        return cls(signatures, len(items))


@attr.s(slots=True, frozen=True)
class P2SH_Input:
    '''The input for a redeem script followed by a push of the redeem script.'''
    script_input = attr.ib()
    redeem_output = attr.ib()

    def __attrs_post_init__(self):
        if not self.script_input.matches(self.redeem_output):
            raise ValueError('script input does not spend the redeem script')

    def to_script(self):
        return self.script_input.to_script() << self.redeem_output.to_script_bytes()

    def matches(self, output):
        return (isinstance(output, P2SH_Output)
                and output.hash160 == self.redeem_output.script_hash())

    @classmethod
    def from_template(cls, *items):
        *input_items, redeem_script = items
        redeem_output = classify_output_script(Script(redeem_script))
        if isinstance(redeem_output, (P2SH_Output, Unknown_Output)):
            raise ValueError('redeem script is not a standard script')
        script_input = _classify_script(Script().push_many(input_items), _input_templates[:-1],
                                        None)
        if script_input is None:
            raise ValueError('redeem script inputs are not standard')
        return cls(script_input, redeem_output)


@attr.s(slots=True, frozen=True)
class Unknown_Input:
    '''A script matching no standard input template.  The raw script is retained.'''
    script = attr.ib(converter=Script)

    def to_script(self):
        return self.script

    def matches(self, output):
        return False


#
# Classification
#

def _script_template(script):
    '''Return a pair (template, items).

    template: a byte string of the script's operations, with every push (including
              OP_0, OP_1NEGATE and OP_1 to OP_16) replaced by OP_PUSHDATA1.
    items:    the items pushed by the script.

    Raises TruncatedScriptError if the script is truncated.
    '''
    ops = list(script.ops())
    template = bytes(Ops.OP_PUSHDATA1 if isinstance(op, bytes) else op for op in ops)
    items = [op for op in ops if isinstance(op, bytes)]
    return template, items


def _classify_script(script, templates, unknown_class):
    try:
        our_template, items = _script_template(script)
    except TruncatedScriptError:
        return unknown_class(script) if unknown_class else None

    for template, constructor in templates:
        if isinstance(template, bytes):
            if template != our_template:
                continue
        elif not template.fullmatch(our_template):
            continue

        try:
            return constructor(*items)
        except (ValueError, TypeError, InvalidSignature):
            pass

    return unknown_class(script) if unknown_class else None


_PUSH = pack_byte(Ops.OP_PUSHDATA1)

_output_templates = (
    (bytes((Ops.OP_DUP, Ops.OP_HASH160, Ops.OP_PUSHDATA1, Ops.OP_EQUALVERIFY,
            Ops.OP_CHECKSIG)), P2PKH_Output),
    (bytes((Ops.OP_HASH160, Ops.OP_PUSHDATA1, Ops.OP_EQUAL)), P2SH_Output),
    (bytes((Ops.OP_PUSHDATA1, Ops.OP_CHECKSIG)), P2PK_Output),
    (re.compile(_PUSH + b'{3,}' + re.escape(pack_byte(Ops.OP_CHECKMULTISIG))),
     P2MultiSig_Output.from_template),
)


def _p2pkh_input(signature, public_key):
    return P2PKH_Input(TxSignature.from_bytes(signature), public_key)


def _p2pk_input(signature):
    return P2PK_Input(TxSignature.from_bytes(signature))


# P2SH must come last; it classifies its inner input with the others
_input_templates = (
    (_PUSH * 2, _p2pkh_input),
    (_PUSH, _p2pk_input),
    (re.compile(_PUSH + b'{2,}'), P2MultiSig_Input.from_template),
    (re.compile(_PUSH + b'{2,}'), P2SH_Input.from_template),
)


def classify_output_script(script):
    '''Classify an output script, returning an instance of one of the output classes.
    Scripts matching no standard template, including truncated scripts, return an
    Unknown_Output.

    A standard output has exactly one encoding: minimal pushes of its hash or public keys,
    and OP_1 to OP_16 for multisig counts.  Other encodings are unknown.
    '''
    script = Script(script)
    output = _classify_script(script, _output_templates, Unknown_Output)
    if output.to_script_bytes() != bytes(script):
        return Unknown_Output(script)
    return output


def classify_input_script(script):
    '''Classify an input script, returning an instance of one of the input classes.
    Scripts matching no standard template, including truncated scripts, return an
    Unknown_Input.'''
    return _classify_script(Script(script), _input_templates, Unknown_Input)
