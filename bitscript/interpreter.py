# Copyright (c) 2018-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Bitcoin script interpreter.'''

__all__ = (
    'InterpreterLimits', 'InterpreterState', 'InterpreterFlags', 'EvaluationResult',
    'Branch', 'Condition', 'verify_script', 'evaluate_scripts', 'tx_sig_check',
    'MANDATORY_SCRIPT_VERIFY_FLAGS', 'STANDARD_SCRIPT_VERIFY_FLAGS',
)


import logging
import operator
from enum import IntEnum, IntFlag
from functools import partial

import attr
from coincurve import PublicKey

from .consts import (
    MAX_SCRIPT_SIZE, MAX_SCRIPT_ELEMENT_SIZE, MAX_OPS_PER_SCRIPT, MAX_STACK_ELEMENTS,
    MAX_PUBKEYS_PER_MULTISIG, MAX_SCRIPT_NUM_LENGTH,
)
from .errors import (
    ScriptError, NumEqualVerifyFailed, MinimalEncodingError, InvalidPublicKeyEncoding,
    ScriptTooLarge, TooManyOps, InvalidPushSize, DisabledOpcode, UnbalancedConditional,
    InvalidStackOperation, VerifyFailed, OpReturnError, InvalidOpcode, InvalidNumber,
    EqualVerifyFailed, NonCanonicalSignature, InvalidPublicKeyCount, NullDummyError,
    UpgradeableNopError, PushOnlyError, CheckSigVerifyFailed, CheckMultiSigVerifyFailed,
    InvalidSignatureCount, CleanStackError, EvalFalse,
)
from .hashes import ripemd160, hash160, sha1, sha256, double_sha256
from .limited_stack import LimitedStack
# pylint:disable=E0611
from .script import (
    Script, ScriptIterator, Ops, OP_16, OP_IF, OP_ENDIF,
    int_to_item, item_to_int, minimal_push_opcode, is_item_minimally_encoded,
    cast_to_bool, bool_items,
)
from .signature import Signature, SigHash, SigEncoding, TxSignature


logger = logging.getLogger('interpreter')


class InterpreterFlags(IntFlag):
    # Require most compact opcode for pushing stack data, and require minimal-encoding of numbers
    REQUIRE_MINIMAL_PUSH = 1 << 0
    # A non-canonical signature to OP_CHECKSIG[VERIFY] fails the script rather than
    # evaluating to false
    REQUIRE_STRICT_DER = 1 << 1
    # As REQUIRE_STRICT_DER for OP_CHECKMULTISIG[VERIFY]
    REQUIRE_STRICT_DER_MULTISIG = 1 << 2
    # A signature with a high S value fails the script
    REQUIRE_LOW_S = 1 << 3
    # Public keys must be compressed or uncompressed, sighash types must be defined
    REQUIRE_STRICT_ENCODING = 1 << 4
    # The dummy argument of OP_CHECKMULTISIG[VERIFY] must be empty
    REQUIRE_NULLDUMMY = 1 << 5
    # Fail on executing OP_NOP1 ... OP_NOP10
    REJECT_UPGRADEABLE_NOPS = 1 << 6
    # Evaluate the redeem script of P2SH outputs
    ENABLE_P2SH = 1 << 7
    # The script_sig must be push-only
    REQUIRE_SIGPUSH_ONLY = 1 << 8
    # Exactly one item must remain on the stack after evaluation
    REQUIRE_CLEANSTACK = 1 << 9


MANDATORY_SCRIPT_VERIFY_FLAGS = InterpreterFlags.ENABLE_P2SH

STANDARD_SCRIPT_VERIFY_FLAGS = (
    MANDATORY_SCRIPT_VERIFY_FLAGS
    | InterpreterFlags.REQUIRE_STRICT_ENCODING
    | InterpreterFlags.REQUIRE_LOW_S
    | InterpreterFlags.REQUIRE_NULLDUMMY
    | InterpreterFlags.REQUIRE_MINIMAL_PUSH
    | InterpreterFlags.REJECT_UPGRADEABLE_NOPS
    | InterpreterFlags.REQUIRE_SIGPUSH_ONLY
    | InterpreterFlags.REQUIRE_CLEANSTACK
)

DISABLED_OPCODES = frozenset((
    Ops.OP_CAT, Ops.OP_SUBSTR, Ops.OP_LEFT, Ops.OP_RIGHT, Ops.OP_INVERT, Ops.OP_AND,
    Ops.OP_OR, Ops.OP_XOR, Ops.OP_2MUL, Ops.OP_2DIV, Ops.OP_MUL, Ops.OP_DIV, Ops.OP_MOD,
    Ops.OP_LSHIFT, Ops.OP_RSHIFT,
))


@attr.s(slots=True, frozen=True)
class InterpreterLimits:
    '''The flags and consensus limits a script is evaluated under.

    Instances are immutable; use attr.evolve() to derive different limits.
    '''
    flags = attr.ib(default=MANDATORY_SCRIPT_VERIFY_FLAGS, converter=InterpreterFlags)
    script_size = attr.ib(default=MAX_SCRIPT_SIZE)
    item_size = attr.ib(default=MAX_SCRIPT_ELEMENT_SIZE)
    ops_per_script = attr.ib(default=MAX_OPS_PER_SCRIPT)
    stack_size = attr.ib(default=MAX_STACK_ELEMENTS)
    pubkeys_per_multisig = attr.ib(default=MAX_PUBKEYS_PER_MULTISIG)
    script_num_length = attr.ib(default=MAX_SCRIPT_NUM_LENGTH)

    def cleanup_script_code(self, sig_bytes, script_code):
        '''Return script_code with signatures deleted.'''
        return script_code.find_and_delete(Script() << sig_bytes)

    def validate_nulldummy(self, dummy):
        '''Fail if the multisig duumy pop isn't an empty stack item.'''
        if dummy and self.flags & InterpreterFlags.REQUIRE_NULLDUMMY:
            raise NullDummyError('multisig dummy argument was not null')

    def validate_signature(self, sig_bytes, strict_flag):
        '''Return a TxSignature if the signature is canonical, otherwise None so that the
        signature check evaluates to false.

        Raises NonCanonicalSignature instead if strict_flag is set, or if the specific
        defect is one that the flags REQUIRE_LOW_S or REQUIRE_STRICT_ENCODING reject.  An
        empty signature is never an error.
        '''
        if not sig_bytes:
            return None

        flags = self.flags
        kind = Signature.analyze_encoding(sig_bytes)
        if not kind & SigEncoding.STRICT_DER:
            if flags & strict_flag:
                raise NonCanonicalSignature('signature does not follow strict DER encoding')
            return None

        if not kind & SigEncoding.LOW_S:
            if flags & (strict_flag | InterpreterFlags.REQUIRE_LOW_S):
                raise NonCanonicalSignature('signature has high S value')
            return None

        sighash = SigHash.from_sig_bytes(sig_bytes)
        if not sighash.is_defined():
            if flags & (strict_flag | InterpreterFlags.REQUIRE_STRICT_ENCODING):
                raise NonCanonicalSignature(f'undefined sighash type {sighash.to_string()}')
            return None

        return TxSignature.from_bytes(sig_bytes)

    def validate_pubkey(self, pubkey_bytes):
        '''Raise the InvalidPublicKeyEncoding exception if the public key is not a standard
        compressed or uncompressed encoding and REQUIRE_STRICT_ENCODING is flagged.'''
        if self.flags & InterpreterFlags.REQUIRE_STRICT_ENCODING:
            length = len(pubkey_bytes)
            if length == 33 and pubkey_bytes[0] in {2, 3}:
                return
            if length == 65 and pubkey_bytes[0] == 4:
                return
            raise InvalidPublicKeyEncoding('invalid public key encoding')

    def validate_pubkey_count(self, count):
        limit = self.pubkeys_per_multisig
        if not 0 <= count <= limit:
            raise InvalidPublicKeyCount(f'number of public keys, {count:,d}, in multi-sig check '
                                        f'lies outside range 0 <= count <= {limit:d}')

    def validate_number_length(self, size):
        limit = self.script_num_length
        if size > limit:
            raise InvalidNumber(f'number of length {size:,d} bytes exceeds the limit '
                                f'of {limit:,d} bytes')

    def to_number(self, item):
        self.validate_number_length(len(item))

        if (self.flags & InterpreterFlags.REQUIRE_MINIMAL_PUSH
                and not is_item_minimally_encoded(item)):
            raise MinimalEncodingError(f'number is not minimally encoded: {item.hex()}')

        return item_to_int(item)

    def validate_item_size(self, size):
        '''Enforces the limit on stack item size.'''
        if size > self.item_size:
            raise InvalidPushSize(f'item length {size:,d} exceeds the limit '
                                  f'of {self.item_size:,d} bytes')

    def validate_minimal_push_opcode(self, op, item):
        if self.flags & InterpreterFlags.REQUIRE_MINIMAL_PUSH:
            expected_op = minimal_push_opcode(item)
            if op != expected_op:
                raise MinimalEncodingError(f'item not pushed with minimal opcode {expected_op}')

    def validate_upgradeable_nop(self, op):
        '''Raise on upgradeable nops if the flag is set.'''
        if self.flags & InterpreterFlags.REJECT_UPGRADEABLE_NOPS:
            raise UpgradeableNopError(f'encountered upgradeable NOP {op.name}')


class Branch(IntEnum):
    '''The state of an open condition block.'''
    # The branch is being executed
    EXECUTING = 0
    # The branch is not being executed; OP_ELSE would execute the other one
    SKIPPING = 1
    # An enclosing branch is not executing, so neither branch of this block is
    INACTIVE = 2


@attr.s(slots=True)
class Condition:
    '''Represents an open condition block whilst executing.'''
    opcode = attr.ib()       # OP_IF or OP_NOTIF
    branch = attr.ib()       # A Branch; EXECUTING and SKIPPING swap on OP_ELSE

    def on_else(self):
        if self.branch == Branch.EXECUTING:
            self.branch = Branch.SKIPPING
        elif self.branch == Branch.SKIPPING:
            self.branch = Branch.EXECUTING


@attr.s(slots=True, frozen=True)
class EvaluationResult:
    '''The outcome of evaluate_scripts(): error is None on success, otherwise the single
    ScriptError that terminated evaluation.  stack is the final data stack.'''
    error = attr.ib()
    stack = attr.ib()

    @property
    def is_success(self):
        return self.error is None


class InterpreterState:
    '''Interpreter state that updates as a script executes.

    sig_check is a callable sig_check(script_code, public_key, tx_signature) returning
    True if the signature is valid.  It is only called for canonical signatures.
    '''

    def __init__(self, limits, sig_check=None):
        self.limits = limits
        self.sig_check = sig_check
        self.stack = LimitedStack(self.limits.stack_size)
        self.alt_stack = self.stack.make_child_stack()
        self.conditions = []
        self.execute = False
        self.iterator = None
        self.op_count = 0

    def bump_op_count(self, bump):
        self.op_count += bump
        if self.op_count > self.limits.ops_per_script:
            raise TooManyOps(f'op count exceeds the limit of {self.limits.ops_per_script:,d}')

    def require_stack_depth(self, depth):
        if len(self.stack) < depth:
            raise InvalidStackOperation(f'stack depth {len(self.stack)} less than required '
                                        f'depth of {depth}')

    def require_alt_stack(self):
        if not self.alt_stack:
            raise InvalidStackOperation('alt stack is empty')

    def evaluate_script(self, script):
        '''Evaluate a script and update state.  Conditionals must balance within the script,
        and the op count limit applies to it alone.  The alt stack starts empty.'''
        if len(script) > self.limits.script_size:
            raise ScriptTooLarge(f'script length {len(script):,d} exceeds the limit of '
                                 f'{self.limits.script_size:,d} bytes')

        handlers = self._handlers
        self.conditions = []
        self.op_count = 0
        self.alt_stack.clear()
        self.iterator = ScriptIterator(script)

        for op, item in self.iterator.ops_and_items():
            # Check pushitem size first
            if item is not None:
                self.limits.validate_item_size(len(item))

            self.execute = all(condition.branch == Branch.EXECUTING
                               for condition in self.conditions)

            # Pushitem and OP_RESERVED do not count towards op count.
            if op > OP_16:
                self.bump_op_count(1)

            # Disabled opcodes fail even in unexecuted branches
            if op in DISABLED_OPCODES:
                raise DisabledOpcode(f'{Ops(op).name} is disabled')

            if self.execute and item is not None:
                self.limits.validate_minimal_push_opcode(op, item)
                self.stack.append(item)
            elif self.execute or OP_IF <= op <= OP_ENDIF:
                handlers[op](self)

        if self.conditions:
            raise UnbalancedConditional(f'unterminated {self.conditions[-1].opcode.name} '
                                        'at end of script')

    def require_true_top(self):
        if not self.stack or not cast_to_bool(self.stack[-1]):
            raise EvalFalse('evaluation finished with a false stack top')

    def evaluate_scripts(self, script_sig, script_pubkey):
        '''Evaluate script_sig then script_pubkey, and the redeem script if script_pubkey
        is P2SH and the flags enable it.  Raises an InterpreterError, EvalFalse if the
        result is false, unless the scripts successfully authorize the spend.'''
        flags = self.limits.flags
        if flags & InterpreterFlags.REQUIRE_SIGPUSH_ONLY and not script_sig.is_push_only():
            raise PushOnlyError('script_sig is not pushdata only')

        is_P2SH = flags & InterpreterFlags.ENABLE_P2SH and script_pubkey.is_P2SH()

        self.evaluate_script(script_sig)
        if is_P2SH:
            stack_copy = self.stack.make_copy()
        self.evaluate_script(script_pubkey)
        self.require_true_top()

        # Additional validation for P2SH transactions
        if is_P2SH:
            if not script_sig.is_push_only():
                raise PushOnlyError('P2SH script_sig is not pushdata only')
            self.stack.restore_copy(stack_copy)
            self.require_stack_depth(1)
            redeem_script = Script(self.stack.pop())
            self.evaluate_script(redeem_script)
            self.require_true_top()

        if flags & InterpreterFlags.REQUIRE_CLEANSTACK and len(self.stack) != 1:
            raise CleanStackError('stack is not clean')

    def check_sig(self, sig_bytes, pubkey_bytes, script_code, strict_flag):
        '''Check a signature.  Returns True or False.'''
        tx_signature = self.limits.validate_signature(sig_bytes, strict_flag)
        self.limits.validate_pubkey(pubkey_bytes)
        if tx_signature is None:
            return False
        if self.sig_check is None:
            raise RuntimeError('cannot check signatures without a sig_check')
        return bool(self.sig_check(script_code, pubkey_bytes, tx_signature))

    def _pop_and_verify(self, op, exc_class):
        # (true -- ) or fail.  The stack top is the result of the unverified opcode.
        if not cast_to_bool(self.stack[-1]):
            raise exc_class(f'{op.name} failed')
        self.stack.pop()

    #
    # Control
    #
    def on_NOP(self):
        pass

    def on_IF(self, op):
        if not self.execute:
            self.conditions.append(Condition(op, Branch.INACTIVE))
            return
        self.require_stack_depth(1)
        # OP_NOTIF inverts the test
        taken = cast_to_bool(self.stack.pop()) != (op == Ops.OP_NOTIF)
        self.conditions.append(Condition(op, Branch.EXECUTING if taken else Branch.SKIPPING))

    def on_ELSE(self):
        if not self.conditions:
            raise UnbalancedConditional('unexpected OP_ELSE')
        self.conditions[-1].on_else()

    def on_ENDIF(self):
        if not self.conditions:
            raise UnbalancedConditional('unexpected OP_ENDIF')
        self.conditions.pop()

    def on_VERIFY(self):
        self.require_stack_depth(1)
        self._pop_and_verify(Ops.OP_VERIFY, VerifyFailed)

    def on_RETURN(self):
        raise OpReturnError('OP_RETURN encountered')

    def on_invalid_opcode(self, op):
        try:
            name = Ops(op).name
        except ValueError:
            name = str(op)
        raise InvalidOpcode(f'invalid opcode {name}')

    #
    # Stack operations
    #
    def _move_to_top(self, depth, count):
        # Moves count items, the lowest depth items from the top, to the top in order
        self.require_stack_depth(depth)
        self.stack.extend([self.stack.pop(k - depth) for k in range(count)])

    def on_TOALTSTACK(self):
        self.require_stack_depth(1)
        self.alt_stack.append(self.stack.pop())

    def on_FROMALTSTACK(self):
        self.require_alt_stack()
        self.stack.append(self.alt_stack.pop())

    def on_nDROP(self, n):
        # (x -- ) or (x1 x2 -- )
        self.require_stack_depth(n)
        for _ in range(n):
            self.stack.pop()

    def on_nDUP(self, n):
        # (x -- x x) or (x1 x2 -- x1 x2 x1 x2) or (x1 x2 x3 -- x1 x2 x3 x1 x2 x3)
        self.require_stack_depth(n)
        self.stack.extend(self.stack[-n:])

    def on_nOVER(self, n):
        # (x1 x2 -- x1 x2 x1) or (x1 x2 x3 x4 -- x1 x2 x3 x4 x1 x2)
        self.require_stack_depth(2 * n)
        self.stack.extend(self.stack[-2 * n: -n])

    def on_nROT(self, n):
        # (x1 x2 x3 -- x2 x3 x1) or (x1 x2 x3 x4 x5 x6 -- x3 x4 x5 x6 x1 x2)
        self._move_to_top(3 * n, n)

    def on_nSWAP(self, n):
        # (x1 x2 -- x2 x1) or (x1 x2 x3 x4 -- x3 x4 x1 x2)
        self._move_to_top(2 * n, n)

    def on_IFDUP(self):
        # (x -- 0 | x x)
        self.require_stack_depth(1)
        if cast_to_bool(self.stack[-1]):
            self.stack.append(self.stack[-1])

    def on_DEPTH(self):
        # ( -- depth)
        self.stack.append(int_to_item(len(self.stack)))

    def on_NIP(self):
        # (x1 x2 -- x2)
        self.require_stack_depth(2)
        self.stack.pop(-2)

    def on_TUCK(self):
        # (x1 x2 -- x2 x1 x2)
        self.require_stack_depth(2)
        self.stack.insert(-2, self.stack[-1])

    def on_PICK_ROLL(self, op):
        # (xn ... x0 n -- xn ... x0 xn) for OP_PICK; OP_ROLL also removes xn
        self.require_stack_depth(2)
        n = self.limits.to_number(self.stack[-1])
        self.stack.pop()
        depth = len(self.stack)
        if not 0 <= n < depth:
            raise InvalidStackOperation(f'{op.name} with argument {n:,d} used '
                                        f'on stack with depth {depth:,d}')
        index = -(n + 1)
        self.stack.append(self.stack.pop(index) if op == Ops.OP_ROLL else self.stack[index])

    def on_SIZE(self):
        # (x -- x size(x))
        self.require_stack_depth(1)
        self.stack.append(int_to_item(len(self.stack[-1])))

    #
    # Bitwise logic
    #
    def on_EQUAL(self):
        # (x1 x2 -- bool)
        self.require_stack_depth(2)
        self.stack.append(bool_items[self.stack.pop() == self.stack.pop()])

    #
    # Numeric
    #
    def on_numeric(self, func, arity):
        # (x -- out) or (x1 x2 -- out) or (x min max -- out)
        self.require_stack_depth(arity)
        args = [self.limits.to_number(item) for item in self.stack[-arity:]]
        result = int_to_item(func(*args))
        for _ in range(arity - 1):
            self.stack.pop()
        self.stack[-1] = result

    #
    # Crypto
    #
    def on_hash(self, hash_func):
        # (x -- hash)
        self.require_stack_depth(1)
        self.stack[-1] = hash_func(self.stack[-1])

    def on_CODESEPARATOR(self):
        self.iterator.on_code_separator()

    def on_CHECKSIG(self):
        # (sig pubkey -- bool)
        self.require_stack_depth(2)
        sig_bytes, pubkey_bytes = self.stack[-2:]
        script_code = self.limits.cleanup_script_code(sig_bytes, self.iterator.script_code())
        is_good = self.check_sig(sig_bytes, pubkey_bytes, script_code,
                                 InterpreterFlags.REQUIRE_STRICT_DER)
        self.stack.pop()
        self.stack[-1] = bool_items[is_good]

    def on_CHECKMULTISIG(self):
        # (dummy sig1 ... sigm m pubkey1 ... pubkeyn n -- bool)
        self.require_stack_depth(1)
        key_count = self.limits.to_number(self.stack[-1])
        self.limits.validate_pubkey_count(key_count)
        self.bump_op_count(key_count)

        self.require_stack_depth(key_count + 2)
        sig_count = self.limits.to_number(self.stack[-(key_count + 2)])
        if not 0 <= sig_count <= key_count:
            raise InvalidSignatureCount(f'number of signatures, {sig_count:,d}, in multisig '
                                        f'lies outside range 0 <= count <= {key_count:,d}')
        item_count = key_count + sig_count + 2
        # The historical off-by-one consumes one more item, the dummy, which must be
        # present before any signature is checked
        self.require_stack_depth(item_count + 1)

        # Bottom of stack first
        public_keys = self.stack[-(key_count + 1): -1]
        signatures = self.stack[-item_count: -(key_count + 2)]

        script_code = self.iterator.script_code()
        for sig_bytes in signatures:
            script_code = self.limits.cleanup_script_code(sig_bytes, script_code)

        # Signatures must match keys in order; each key is tried once starting with the
        # last.  Give up once fewer keys remain than signatures.
        while signatures and len(public_keys) >= len(signatures):
            if self.check_sig(signatures[-1], public_keys.pop(), script_code,
                              InterpreterFlags.REQUIRE_STRICT_DER_MULTISIG):
                signatures.pop()
        is_good = not signatures

        for _ in range(item_count):
            self.stack.pop()

        self.limits.validate_nulldummy(self.stack[-1])
        self.stack[-1] = bool_items[is_good]

    #
    # Expansion
    #
    def on_upgradeable_nop(self, op):
        self.limits.validate_upgradeable_nop(op)

    def on_verify_variant(self, op, handler, exc_class):
        handler(self)
        self._pop_and_verify(op, exc_class)

    @classmethod
    def bind_handlers(cls):
        # Reserved, disabled and unassigned opcodes are invalid if executed
        handlers = [partial(cls.on_invalid_opcode, op=op) for op in range(256)]

        handlers[Ops.OP_NOP] = cls.on_NOP
        handlers[Ops.OP_IF] = partial(cls.on_IF, op=Ops.OP_IF)
        handlers[Ops.OP_NOTIF] = partial(cls.on_IF, op=Ops.OP_NOTIF)
        handlers[Ops.OP_ELSE] = cls.on_ELSE
        handlers[Ops.OP_ENDIF] = cls.on_ENDIF
        handlers[Ops.OP_VERIFY] = cls.on_VERIFY
        handlers[Ops.OP_RETURN] = cls.on_RETURN

        handlers[Ops.OP_TOALTSTACK] = cls.on_TOALTSTACK
        handlers[Ops.OP_FROMALTSTACK] = cls.on_FROMALTSTACK
        for n, (drop, dup, over, rot, swap) in enumerate(_SIZED_STACK_OPS, start=1):
            handlers[drop] = partial(cls.on_nDROP, n=n)
            handlers[dup] = partial(cls.on_nDUP, n=n)
            handlers[over] = partial(cls.on_nOVER, n=n)
            handlers[rot] = partial(cls.on_nROT, n=n)
            handlers[swap] = partial(cls.on_nSWAP, n=n)
        handlers[Ops.OP_3DUP] = partial(cls.on_nDUP, n=3)
        handlers[Ops.OP_IFDUP] = cls.on_IFDUP
        handlers[Ops.OP_DEPTH] = cls.on_DEPTH
        handlers[Ops.OP_NIP] = cls.on_NIP
        handlers[Ops.OP_TUCK] = cls.on_TUCK
        handlers[Ops.OP_PICK] = partial(cls.on_PICK_ROLL, op=Ops.OP_PICK)
        handlers[Ops.OP_ROLL] = partial(cls.on_PICK_ROLL, op=Ops.OP_ROLL)
        handlers[Ops.OP_SIZE] = cls.on_SIZE

        handlers[Ops.OP_EQUAL] = cls.on_EQUAL
        for arity, funcs in ((1, _UNARY_NUMERIC), (2, _BINARY_NUMERIC)):
            for op, func in funcs.items():
                handlers[op] = partial(cls.on_numeric, func=func, arity=arity)
        handlers[Ops.OP_WITHIN] = partial(cls.on_numeric, func=within, arity=3)

        for op, hash_func in _HASH_FUNCS.items():
            handlers[op] = partial(cls.on_hash, hash_func=hash_func)
        handlers[Ops.OP_CODESEPARATOR] = cls.on_CODESEPARATOR
        handlers[Ops.OP_CHECKSIG] = cls.on_CHECKSIG
        handlers[Ops.OP_CHECKMULTISIG] = cls.on_CHECKMULTISIG

        for op, base_op, exc_class in _VERIFY_VARIANTS:
            handlers[op] = partial(cls.on_verify_variant, op=op, handler=handlers[base_op],
                                   exc_class=exc_class)

        for op in range(Ops.OP_NOP1, Ops.OP_NOP10 + 1):
            handlers[op] = partial(cls.on_upgradeable_nop, op=Ops(op))

        cls._handlers = handlers


def within(x, low, high):
    return low <= x < high


# Opcodes operating on one item, and their counterparts operating on pairs
_SIZED_STACK_OPS = (
    (Ops.OP_DROP, Ops.OP_DUP, Ops.OP_OVER, Ops.OP_ROT, Ops.OP_SWAP),
    (Ops.OP_2DROP, Ops.OP_2DUP, Ops.OP_2OVER, Ops.OP_2ROT, Ops.OP_2SWAP),
)

_UNARY_NUMERIC = {
    Ops.OP_1ADD: lambda x: x + 1,
    Ops.OP_1SUB: lambda x: x - 1,
    Ops.OP_NEGATE: operator.neg,
    Ops.OP_ABS: abs,
    Ops.OP_NOT: operator.not_,
    Ops.OP_0NOTEQUAL: operator.truth,
}

_BINARY_NUMERIC = {
    Ops.OP_ADD: operator.add,
    Ops.OP_SUB: operator.sub,
    Ops.OP_BOOLAND: lambda x1, x2: x1 != 0 and x2 != 0,
    Ops.OP_BOOLOR: lambda x1, x2: x1 != 0 or x2 != 0,
    Ops.OP_NUMEQUAL: operator.eq,
    Ops.OP_NUMNOTEQUAL: operator.ne,
    Ops.OP_LESSTHAN: operator.lt,
    Ops.OP_GREATERTHAN: operator.gt,
    Ops.OP_LESSTHANOREQUAL: operator.le,
    Ops.OP_GREATERTHANOREQUAL: operator.ge,
    Ops.OP_MIN: min,
    Ops.OP_MAX: max,
}

_HASH_FUNCS = {
    Ops.OP_RIPEMD160: ripemd160,
    Ops.OP_SHA1: sha1,
    Ops.OP_SHA256: sha256,
    Ops.OP_HASH160: hash160,
    Ops.OP_HASH256: double_sha256,
}

# (opcode, the opcode it runs before popping a true result, failure)
_VERIFY_VARIANTS = (
    (Ops.OP_EQUALVERIFY, Ops.OP_EQUAL, EqualVerifyFailed),
    (Ops.OP_NUMEQUALVERIFY, Ops.OP_NUMEQUAL, NumEqualVerifyFailed),
    (Ops.OP_CHECKSIGVERIFY, Ops.OP_CHECKSIG, CheckSigVerifyFailed),
    (Ops.OP_CHECKMULTISIGVERIFY, Ops.OP_CHECKMULTISIG, CheckMultiSigVerifyFailed),
)


InterpreterState.bind_handlers()


def evaluate_scripts(script_sig, script_pubkey, sig_check, limits=None):
    '''Evaluate script_sig followed by script_pubkey and return an EvaluationResult.

    A ScriptError raised during evaluation, including EvalFalse if the final stack is
    empty or false, becomes the result's error; nothing is raised.
    '''
    limits = limits or InterpreterLimits()
    state = InterpreterState(limits, sig_check)
    try:
        state.evaluate_scripts(Script(script_sig), Script(script_pubkey))
    except ScriptError as e:
        logger.debug(f'evaluation failed: {e.__class__.__name__}: {e}')
        return EvaluationResult(e, state.stack.items())
    return EvaluationResult(None, state.stack.items())


def verify_script(script_sig, script_pubkey, sig_check, limits=None):
    '''Return True if script_sig successfully spends script_pubkey, False if the final
    stack is empty or false.

    Other evaluation failures raise the specific InterpreterError or DecodeError.
    '''
    limits = limits or InterpreterLimits()
    state = InterpreterState(limits, sig_check)
    try:
        state.evaluate_scripts(Script(script_sig), Script(script_pubkey))
    except EvalFalse:
        return False
    return True


def tx_sig_check(tx, input_index):
    '''Return a sig_check function verifying signatures for input input_index of tx with
    coincurve.'''
    def sig_check(script_code, public_key, tx_signature):
        try:
            key = PublicKey(public_key)
        except ValueError:
            return False
        message_hash = tx.signature_hash(input_index, script_code, tx_signature.sighash)
        # libsecp256k1 only verifies low-S signatures
        der_sig = tx_signature.to_low_s().to_der()
        try:
            return key.verify(der_sig, message_hash, hasher=None)
        except ValueError:
            return False

    return sig_check
