# Copyright (c) 2018-2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Transactions: their wire format and the legacy signature hash.'''

__all__ = (
    'Tx', 'TxInput', 'TxOutput',
)

from io import BytesIO
from typing import List

import attr

from .consts import SIGHASH_SINGLE_BUG
from .hashes import hash_to_hex_str, double_sha256
from .packing import (
    pack_le_int32, pack_le_uint32, pack_varbytes, pack_le_int64, pack_list,
    read_le_int32, read_le_uint32, read_varbytes, read_le_int64, read_list
)
from .script import Script
from .signature import SigHash, SigHashKind


class _WireObject:
    '''Conversions for classes defining read() and to_bytes().  Reading raises struct.error
    on truncated input.'''
    __slots__ = ()

    @classmethod
    def from_bytes(cls, raw):
        return cls.read(BytesIO(raw).read)

    @classmethod
    def from_hex(cls, hex_str):
        return cls.from_bytes(bytes.fromhex(hex_str))

    def to_hex(self):
        return self.to_bytes().hex()


@attr.s(slots=True)
class Tx(_WireObject):
    '''A transaction.  Inputs and outputs are lists so a transaction can be built up and
    re-signed; signature_hash() never modifies it.'''
    version: int = attr.ib()
    inputs: List["TxInput"] = attr.ib()
    outputs: List["TxOutput"] = attr.ib()
    locktime: int = attr.ib()

    @classmethod
    def read(cls, read):
        return cls(
            read_le_int32(read),
            read_list(read, TxInput.read),
            read_list(read, TxOutput.read),
            read_le_uint32(read),
        )

    def to_bytes(self):
        return b''.join((
            pack_le_int32(self.version),
            pack_list(self.inputs, TxInput.to_bytes),
            pack_list(self.outputs, TxOutput.to_bytes),
            pack_le_uint32(self.locktime),
        ))

    def signature_hash_tx(self, input_index, script_code, sighash):
        '''Return the copy of the transaction that is serialized to sign input input_index.

        The caller must have checked that input_index is in range, and that a SIGHASH_SINGLE
        input has an output with the same index.
        '''
        kind = sighash.base_kind
        blank_sequences = kind in (SigHashKind.NONE, SigHashKind.SINGLE)
        script_code = Script(script_code).without_code_separators()

        def signing_input(n, txin):
            if n == input_index:
                return attr.evolve(txin, script_sig=script_code)
            if blank_sequences:
                return attr.evolve(txin, script_sig=Script(), sequence=0)
            return attr.evolve(txin, script_sig=Script())

        if sighash.anyone_can_pay:
            inputs = [signing_input(input_index, self.inputs[input_index])]
        else:
            inputs = [signing_input(n, txin) for n, txin in enumerate(self.inputs)]

        if kind == SigHashKind.NONE:
            outputs = []
        elif kind == SigHashKind.SINGLE:
            # Outputs before the signed one are serialized as null outputs
            outputs = [TxOutput.null()] * input_index + [self.outputs[input_index]]
        else:
            outputs = list(self.outputs)

        return attr.evolve(self, inputs=inputs, outputs=outputs)

    def signature_hash(self, input_index, script_code, sighash):
        '''Return the hash signed by a signature with the given sighash for input
        input_index.

        script_code, raw bytes or a Script, is the part of the script being executed
        following its last executed OP_CODESEPARATOR, if any.  Remaining
        OP_CODESEPARATORs are removed before hashing.

        If input_index is out of range, or the sighash is SINGLE and there is no output
        with the same index, the historical constant SIGHASH_SINGLE_BUG is returned.
        '''
        if not isinstance(sighash, SigHash):
            raise TypeError('sighash must be a SigHash instance')
        if not 0 <= input_index < len(self.inputs):
            return SIGHASH_SINGLE_BUG
        if sighash.base_kind == SigHashKind.SINGLE and input_index >= len(self.outputs):
            return SIGHASH_SINGLE_BUG

        tx = self.signature_hash_tx(input_index, script_code, sighash)
        return double_sha256(tx.to_bytes() + sighash.to_bytes32())


@attr.s(slots=True, repr=False)
class TxInput(_WireObject):
    '''A transaction input: the output it spends and the script_sig satisfying it.'''
    prev_hash: bytes = attr.ib()
    prev_idx: int = attr.ib()
    script_sig: Script = attr.ib(converter=Script)
    sequence: int = attr.ib()

    @classmethod
    def read(cls, read):
        return cls(
            read(32),                       # prev_hash
            read_le_uint32(read),           # prev_idx
            read_varbytes(read),            # script_sig
            read_le_uint32(read),           # sequence
        )

    def to_bytes(self):
        return b''.join((
            self.prev_hash,
            pack_le_uint32(self.prev_idx),
            pack_varbytes(bytes(self.script_sig)),
            pack_le_uint32(self.sequence),
        ))

    def __repr__(self):
        return (
            f'TxInput(prev_hash="{hash_to_hex_str(self.prev_hash)}", prev_idx={self.prev_idx}, '
            f'script_sig="{self.script_sig}", sequence={self.sequence})'
        )


@attr.s(slots=True, repr=False)
class TxOutput(_WireObject):
    '''A transaction output: an amount locked by script_pubkey.'''
    value: int = attr.ib()
    script_pubkey: Script = attr.ib(converter=Script)

    @classmethod
    def read(cls, read):
        return cls(
            read_le_int64(read),           # value
            read_varbytes(read),           # script_pubkey
        )

    @classmethod
    def null(cls):
        '''The output serialized in place of outputs not signed by SIGHASH_SINGLE.'''
        return cls(-1, Script())

    def to_bytes(self):
        return pack_le_int64(self.value) + pack_varbytes(bytes(self.script_pubkey))

    def __repr__(self):
        return f'TxOutput(value={self.value}, script_pubkey="{self.script_pubkey}")'
