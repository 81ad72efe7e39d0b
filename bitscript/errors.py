# Copyright (c) 2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Exceptions raised decoding and evaluating scripts.

Every exception derives from ScriptError.  Evaluation failures derive from
InterpreterError; evaluate_scripts() reports them as a result rather than raising.
'''

__all__ = (
    'ScriptError', 'DecodeError', 'TruncatedScriptError', 'ScriptParseError',
    'InterpreterError', 'InvalidSignature', 'NonCanonicalSignature',
    'StackUnderflow', 'InvalidStackOperation', 'DisabledOpcode', 'InvalidOpcode',
    'OpReturnError', 'NumericRange', 'InvalidNumber', 'MinimalEncodingError',
    'UnbalancedConditional', 'ResourceLimitExceeded', 'ScriptTooLarge', 'TooManyOps',
    'StackSizeTooLarge', 'InvalidPushSize', 'InvalidPublicKeyCount', 'InvalidSignatureCount',
    'InvalidPublicKeyEncoding', 'NullDummyError', 'UpgradeableNopError', 'PushOnlyError',
    'CleanStackError', 'VerifyFailed', 'EqualVerifyFailed', 'NumEqualVerifyFailed',
    'CheckSigVerifyFailed', 'CheckMultiSigVerifyFailed', 'EvalFalse',
)


class ScriptError(Exception):
    '''Base class of all errors raised by this package.'''


#
# Decoding
#

class DecodeError(ScriptError, ValueError):
    '''Bytes or text could not be decoded.'''


class TruncatedScriptError(DecodeError):
    '''A push opcode declared more data than remains in the script.'''


class ScriptParseError(DecodeError):
    '''Script text has an unknown token, or does not round-trip once parsed.'''


#
# Evaluation
#

class InterpreterError(ScriptError):
    '''Base class of evaluation failures.'''


class InvalidSignature(InterpreterError):
    '''A signature could not be decoded.'''


class NonCanonicalSignature(InvalidSignature):
    '''A signature is not strict DER, has a high S value, or has an undefined sighash.'''


class StackUnderflow(InterpreterError):
    '''An opcode needed more items than the stack holds, or OP_FROMALTSTACK found the alt
    stack empty.'''


InvalidStackOperation = StackUnderflow


class DisabledOpcode(InterpreterError):
    '''A disabled opcode appeared, executed or not.'''


class InvalidOpcode(InterpreterError):
    '''A reserved or undefined opcode was executed, or OP_VERIF or OP_VERNOTIF appeared.'''


class OpReturnError(InterpreterError):
    '''OP_RETURN was executed.'''


class NumericRange(InterpreterError):
    '''A numeric operand was longer than the script number length limit.'''


InvalidNumber = NumericRange


class UnbalancedConditional(InterpreterError):
    '''OP_ELSE or OP_ENDIF without an open OP_IF, or an OP_IF open at the end of a script.'''


#
# Consensus limits
#

class ResourceLimitExceeded(InterpreterError):
    '''Base class of the limits in InterpreterLimits.'''


class ScriptTooLarge(ResourceLimitExceeded):
    '''A script exceeded the size limit.'''


class TooManyOps(ResourceLimitExceeded):
    '''A script executed more non-push opcodes, counting multisig public keys, than
    allowed.'''


class StackSizeTooLarge(ResourceLimitExceeded):
    '''The data and alt stacks together held too many items.'''


class InvalidPushSize(ResourceLimitExceeded):
    '''A pushed item exceeded the element size limit.'''


class InvalidPublicKeyCount(ResourceLimitExceeded):
    '''The public key count of OP_CHECKMULTISIG was negative or above the limit.'''


class InvalidSignatureCount(ResourceLimitExceeded):
    '''The signature count of OP_CHECKMULTISIG was negative or above the public key
    count.'''


#
# Failures enabled by InterpreterFlags
#

class MinimalEncodingError(InterpreterError):
    '''REQUIRE_MINIMAL_PUSH: a push or a numeric operand was not minimally encoded.'''


class InvalidPublicKeyEncoding(InterpreterError):
    '''REQUIRE_STRICT_ENCODING: a public key was neither compressed nor uncompressed.'''


class NullDummyError(InterpreterError):
    '''REQUIRE_NULLDUMMY: the extra item OP_CHECKMULTISIG consumes was not empty.'''


class UpgradeableNopError(InterpreterError):
    '''REJECT_UPGRADEABLE_NOPS: one of OP_NOP1 to OP_NOP10 was executed.'''


class PushOnlyError(InterpreterError):
    '''A script_sig was not push-only under REQUIRE_SIGPUSH_ONLY, or when spending a P2SH
    output.'''


class CleanStackError(InterpreterError):
    '''REQUIRE_CLEANSTACK: more than one item remained after evaluation.'''


#
# Verification
#

class VerifyFailed(InterpreterError):
    '''OP_VERIFY found a false stack top.'''


class EqualVerifyFailed(VerifyFailed):
    '''OP_EQUALVERIFY compared unequal items.'''


class NumEqualVerifyFailed(VerifyFailed):
    '''OP_NUMEQUALVERIFY compared unequal numbers.'''


class CheckSigVerifyFailed(VerifyFailed):
    '''OP_CHECKSIGVERIFY found an invalid signature.'''


class CheckMultiSigVerifyFailed(VerifyFailed):
    '''OP_CHECKMULTISIGVERIFY found too few valid signatures.'''


class EvalFalse(VerifyFailed):
    '''Evaluation completed but the stack was empty or its top item was false.'''
