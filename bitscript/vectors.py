# Copyright (c) 2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Script test vectors: the script text grammar and JSON vector files.

A vector file is a JSON array.  Entries of 2 or 3 elements are
[script_sig_text, script_pubkey_text, optional_label]; other entries are comments.
'''

__all__ = (
    'parse_vector_script', 'load_vectors', 'run_vector', 'run_vectors', 'reject_sig_check',
    'Vector', 'VectorResult',
)

import json
import logging
import os

import attr

from .errors import ScriptParseError, TruncatedScriptError
from .interpreter import InterpreterLimits, evaluate_scripts
from .misc import prefixed_logger
from .script import Script, Ops, PushData, push_int, b_OP_0


logger = logging.getLogger('vectors')


def _token_to_bytes(token):
    if token.startswith('0x'):
        # Raw bytes inserted in the script as-is
        try:
            return bytes.fromhex(token[2:])
        except ValueError:
            raise ScriptParseError(f'invalid hex token {token}') from None

    if token.isdigit() or token[0] == '-' and token[1:].isdigit():
        return push_int(int(token))

    if len(token) >= 2 and token[0] == token[-1] == "'":
        data = token[1:-1].encode()
        return PushData.minimal(data).to_bytes() if data else b_OP_0

    name = token if token.startswith('OP_') else 'OP_' + token
    try:
        return bytes((Ops[name], ))
    except KeyError:
        raise ScriptParseError(f'unrecognized token {token}') from None


def parse_vector_script(text):
    '''Convert test-vector script text to a Script.

    Raises ScriptParseError if a token is not understood, or if the resulting script does
    not decode and re-encode to the same bytes.
    '''
    script = Script(b''.join(_token_to_bytes(token) for token in text.split()))
    try:
        round_trip = Script.from_ops(script.decode_ops())
    except TruncatedScriptError as e:
        raise ScriptParseError(f'script {text!r} does not decode: {e}') from None
    if round_trip != script:
        raise ScriptParseError(f'script {text!r} does not round-trip')
    return script


@attr.s(slots=True, frozen=True)
class Vector:
    script_sig_text = attr.ib()
    script_pubkey_text = attr.ib()
    label = attr.ib(default='')


@attr.s(slots=True, frozen=True)
class VectorResult:
    '''The outcome of running a vector.  Exactly one of parse_error and result is None.'''
    vector = attr.ib()
    expected = attr.ib()
    parse_error = attr.ib(default=None)
    result = attr.ib(default=None)

    @property
    def is_valid(self):
        return self.parse_error is None and self.result.is_success

    @property
    def passed(self):
        return self.is_valid == self.expected

    def error_kind(self):
        error = self.parse_error or self.result.error
        return error.__class__.__name__ if error else None


def reject_sig_check(script_code, public_key, tx_signature):
    '''A sig_check that rejects every signature.'''
    return False


def load_vectors(path):
    '''Read a JSON vector file returning a list of Vector objects.  Comment entries are
    skipped.'''
    with open(path) as f:
        entries = json.load(f)
    return [Vector(*entry) for entry in entries if len(entry) in (2, 3)]


def run_vector(vector, expected, limits=None, sig_check=reject_sig_check, log=logger):
    '''Parse and evaluate a vector, returning a VectorResult.  Results that differ from
    expected are logged with the script texts and the error kind.'''
    try:
        script_sig = parse_vector_script(vector.script_sig_text)
        script_pubkey = parse_vector_script(vector.script_pubkey_text)
    except ScriptParseError as e:
        result = VectorResult(vector, expected, parse_error=e)
    else:
        limits = limits or InterpreterLimits()
        result = VectorResult(vector, expected,
                              result=evaluate_scripts(script_sig, script_pubkey, sig_check,
                                                      limits))

    if not result.passed:
        log.warning(f'expected {"valid" if expected else "invalid"}: '
                    f'[{vector.script_sig_text!r}, {vector.script_pubkey_text!r}] '
                    f'{vector.label} failed with {result.error_kind()}')
    return result


def run_vectors(path, expected, limits=None):
    '''Run every vector in a JSON file, returning a list of VectorResult objects.'''
    log = prefixed_logger('vectors', os.path.basename(path))
    results = [run_vector(vector, expected, limits, log=log) for vector in load_vectors(path)]
    failures = sum(not result.passed for result in results)
    log.info(f'{len(results):,d} vectors run; {failures:,d} did not match')
    return results
