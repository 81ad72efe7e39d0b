import random

import pytest

from bitscript import (
    Script, SigHash, double_sha256, TxOutput, Tx, TxInput, pack_le_uint32, OP_CODESEPARATOR,
    SIGHASH_SINGLE_BUG, OP_CHECKSIG,
)

from .utils import random_tx, random_script


# A Python translation of the code in bitcoin/src/test/sighash_tests.cpp that represents
# the original reference signature_hash() code

def ref_sighash(script_code, tx, input_index, hash_type):
    if input_index >= len(tx.inputs):
        return SIGHASH_SINGLE_BUG

    # In case concatenating two scripts ends up with two codeseparators, or an
    # extra one at the end, this prevents all those possible incompatibilities.
    script_code = script_code.find_and_delete(Script() << OP_CODESEPARATOR)

    # Blank out other inputs' signatures
    empty_script = Script()
    for tx_in in tx.inputs:
        tx_in.script_sig = empty_script
    tx.inputs[input_index].script_sig = script_code

    # Blank out some of the outputs
    if (hash_type & 0x1f) == 2:
        # Wildcard payee
        tx.outputs.clear()
        # Let the others update at will:
        for n, tx_in in enumerate(tx.inputs):
            if n != input_index:
                tx_in.sequence = 0
    elif (hash_type & 0x1f) == 3:
        if input_index >= len(tx.outputs):
            return SIGHASH_SINGLE_BUG
        tx_output = tx.outputs[input_index]
        tx.outputs = [TxOutput.null() for _ in range(input_index)]
        tx.outputs.append(tx_output)
        # Let the others update at will:
        for n, tx_in in enumerate(tx.inputs):
            if n != input_index:
                tx_in.sequence = 0

    # Blank out other inputs completely; not recommended for open transactions
    if hash_type & 0x80:
        tx.inputs = [tx.inputs[input_index]]

    preimage = tx.to_bytes() + pack_le_uint32(hash_type)

    return double_sha256(preimage)


@pytest.mark.parametrize('execution_count', range(1000))
def test_sighash(execution_count):
    '''Tests signature_hash against the reference on random transactions.'''
    hash_type = random.randrange(0, 256)
    sighash = SigHash.from_byte(hash_type)

    tx = random_tx((hash_type & 0x1f) == 3)
    script_code = random_script()
    input_index = random.randrange(0, len(tx.inputs))

    live_hash = tx.signature_hash(input_index, script_code, sighash)

    # ref_sighash modifies the tx so do it second
    ref_hash = ref_sighash(script_code, tx, input_index, hash_type)

    assert live_hash == ref_hash


def test_sighash_does_not_modify_tx():
    tx = random_tx(False)
    raw = tx.to_bytes()
    for sighash in (SigHash.ALL, SigHash.NONE, SigHash.SINGLE.with_anyone_can_pay()):
        tx.signature_hash(0, random_script(), sighash)
    assert tx.to_bytes() == raw


@pytest.mark.parametrize('sighash', (SigHash.ALL, SigHash.NONE, SigHash.SINGLE,
                                     SigHash.ALL.with_anyone_can_pay(), SigHash(0x22)))
def test_sighash_input_index_out_of_range(sighash):
    tx = random_tx(False)
    assert tx.signature_hash(len(tx.inputs), Script(), sighash) == SIGHASH_SINGLE_BUG
    assert tx.signature_hash(len(tx.inputs) + 5, Script(), sighash) == SIGHASH_SINGLE_BUG
    assert SIGHASH_SINGLE_BUG == bytes([1]) + bytes(31)


def test_sighash_single_without_matching_output():
    inputs = [TxInput(bytes(32), n, Script(), 0xffffffff) for n in range(3)]
    tx = Tx(1, inputs, [TxOutput(5000, Script() << OP_CHECKSIG)], 0)
    assert tx.signature_hash(1, Script(), SigHash.SINGLE) == SIGHASH_SINGLE_BUG
    assert tx.signature_hash(0, Script(), SigHash.SINGLE) != SIGHASH_SINGLE_BUG


def test_sighash_type_check():
    tx = random_tx(False)
    with pytest.raises(TypeError):
        tx.signature_hash(0, Script(), 1)


def test_signature_hash_tx_single():
    inputs = [TxInput(bytes([n]) * 32, n, Script() << OP_CHECKSIG, 0xfffffffe)
              for n in range(3)]
    outputs = [TxOutput(n * 1000, Script() << OP_CHECKSIG) for n in range(3)]
    tx = Tx(1, inputs, outputs, 0)
    script_code = Script() << OP_CHECKSIG << OP_CODESEPARATOR << OP_CHECKSIG

    modified = tx.signature_hash_tx(1, script_code, SigHash.SINGLE)
    assert modified.outputs == [TxOutput.null(), outputs[1]]
    assert [txin.sequence for txin in modified.inputs] == [0, 0xfffffffe, 0]
    assert [txin.script_sig for txin in modified.inputs] == [
        Script(), Script() << OP_CHECKSIG << OP_CHECKSIG, Script()]
    # The original is untouched
    assert tx.outputs == outputs
    assert tx.inputs[0].sequence == 0xfffffffe


def test_signature_hash_tx_anyone_can_pay():
    inputs = [TxInput(bytes([n]) * 32, n, Script() << OP_CHECKSIG, 7) for n in range(3)]
    outputs = [TxOutput(n * 1000, Script()) for n in range(2)]
    tx = Tx(1, inputs, outputs, 0)

    modified = tx.signature_hash_tx(2, Script(), SigHash.NONE.with_anyone_can_pay())
    assert len(modified.inputs) == 1
    assert modified.inputs[0].prev_idx == 2
    assert modified.inputs[0].sequence == 7
    assert modified.outputs == []

    modified = tx.signature_hash_tx(2, Script(), SigHash.ALL)
    assert [txin.sequence for txin in modified.inputs] == [7, 7, 7]
    assert modified.outputs == outputs
