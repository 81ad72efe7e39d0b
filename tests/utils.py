import os
import random

from bitscript import (
    Tx, TxInput, TxOutput, Script, SigHash, TxSignature, SEQUENCE_FINAL,
    OP_FALSE, OP_1, OP_2, OP_3, OP_CHECKSIG, OP_IF, OP_VERIF, OP_RETURN, OP_CODESEPARATOR,
)

data_dir = os.path.join(os.path.dirname(os.path.realpath(__file__)), 'data')


# Includes OP_CODESEPARATOR as signature hashing removes it from script code
random_ops = [OP_FALSE, OP_1, OP_2, OP_3, OP_CHECKSIG, OP_IF,
              OP_VERIF, OP_RETURN, OP_CODESEPARATOR]


def _zeroes():
    # Yields a zero and negative zero
    for size in range(10):
        yield bytes(size)
        yield bytes(size) + b'\x80'


zeroes = list(_zeroes())
non_zeroes = [b'\1', b'\x81', b'\1\0', b'\0\1', b'\0\x81']


def random_script():
    return Script().push_many(random.choices(random_ops, k=random.randrange(0, 10)))


def random_tx(is_single):
    '''A random transaction.  If is_single, the output count is within one of the input
    count so that SIGHASH_SINGLE hashes both succeed and hit the bug.'''
    n_inputs = random.randrange(1, 5)
    if is_single:
        n_outputs = n_inputs + random.randrange(-1, 1)
    else:
        n_outputs = random.randrange(1, 5)

    inputs = [TxInput(os.urandom(32), random.randrange(0, 4), random_script(),
                      random.choice((SEQUENCE_FINAL, random.randrange(0, SEQUENCE_FINAL))))
              for _ in range(n_inputs)]
    outputs = [TxOutput(random.randrange(0, 100_000_000), random_script())
               for _ in range(n_outputs)]
    locktime = random.choice((0, random.randrange(0, 1 << 32)))

    return Tx(random.randrange(-(1 << 31), 1 << 31), inputs, outputs, locktime)


def random_public_key():
    '''A compressed public key.  Only its structure is valid.'''
    return bytes([random.choice((2, 3))]) + os.urandom(32)


def random_signature(sighash=SigHash.ALL):
    '''A canonical signature whose r and s are not from any key.'''
    return TxSignature(int.from_bytes(os.urandom(31), 'big') + 1,
                       int.from_bytes(os.urandom(31), 'big') + 1, sighash)


def data_dir_path(filename):
    return os.path.join(data_dir, filename)


def in_caplog(caplog, message, count=1):
    cap_count = sum(message in record.message for record in caplog.records)
    if count is None:
        return bool(cap_count)
    return count == cap_count
