# Pytest looks here for fixtures

import pytest

from bitscript import SigHash, TxSignature, CURVE_ORDER, HALF_CURVE_ORDER


@pytest.fixture
def low_s_signature():
    '''A canonical signature with a SIGHASH_ALL sighash.'''
    return TxSignature(0x1234567890abcdef << 128, HALF_CURVE_ORDER - 12345, SigHash.ALL)


@pytest.fixture
def high_s_signature():
    return TxSignature(0x1234567890abcdef << 128, CURVE_ORDER - 12345, SigHash.ALL)
