# Copyright (c) 2021, Neil Booth
#
# All rights reserved.
#
# Licensed under the the Open BSV License version 3; see LICENCE for details.
#

'''Consensus constants of scripts, signatures and transactions.'''

__all__ = (
    'INT32_MAX', 'UINT32_MAX', 'SEQUENCE_FINAL',
    'MAX_SCRIPT_SIZE', 'MAX_SCRIPT_ELEMENT_SIZE', 'MAX_OPS_PER_SCRIPT', 'MAX_STACK_ELEMENTS',
    'MAX_PUBKEYS_PER_MULTISIG', 'MAX_SCRIPT_NUM_LENGTH',
    'CURVE_ORDER', 'HALF_CURVE_ORDER', 'SIGHASH_SINGLE_BUG',
)


# Script numbers are sign-magnitude so range over [-INT32_MAX, INT32_MAX]
INT32_MAX = 0x7fffffff
UINT32_MAX = 0xffffffff

# An input with this sequence number is final
SEQUENCE_FINAL = UINT32_MAX

# Evaluation limits
MAX_SCRIPT_SIZE = 10_000
MAX_SCRIPT_ELEMENT_SIZE = 520
MAX_OPS_PER_SCRIPT = 201
# Counts the elements of the data and alt stacks together
MAX_STACK_ELEMENTS = 1_000
MAX_PUBKEYS_PER_MULTISIG = 20
MAX_SCRIPT_NUM_LENGTH = 4

# Order of the secp256k1 group; canonical signatures have S <= HALF_CURVE_ORDER
CURVE_ORDER = 0xfffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141
HALF_CURVE_ORDER = CURVE_ORDER // 2

# The uint256 value 1 as serialized; returned as the "hash" for an out-of-range input or a
# SIGHASH_SINGLE input without a matching output.
SIGHASH_SINGLE_BUG = b'\x01' + bytes(31)
