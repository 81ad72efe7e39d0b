import pytest
import random

from coincurve import PrivateKey

from bitscript import (
    pack_byte, be_bytes_to_int, InvalidSignature, NonCanonicalSignature, CURVE_ORDER,
    HALF_CURVE_ORDER, sha256,
)
from bitscript.signature import *


# List of (der_sig, r, s)
serialization_testcases = [
    (bytes.fromhex('30450221008dc02fa531a9a704f5c01abdeb58930514651565b42abf94f6ad1565d0ad'
                   '6785022027b1396f772c696629a4a09b01aed2416861aeaee05d0ff4a2e6fdfde73ec84d'),
     0x8dc02fa531a9a704f5c01abdeb58930514651565b42abf94f6ad1565d0ad6785,
     0x27b1396f772c696629a4a09b01aed2416861aeaee05d0ff4a2e6fdfde73ec84d),
    # R and S are CURVE_ORDER - 1
    (bytes.fromhex('3046022100fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364'
                   '140022100fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364140'),
     CURVE_ORDER - 1, CURVE_ORDER - 1),
]


@pytest.mark.parametrize("der_sig, r, s", serialization_testcases)
def test_der_signature(der_sig, r, s):
    assert der_signature(r, s) == der_sig


@pytest.mark.parametrize("r, s, der_hex", (
    (0, 0, '3006020100020100'),
    (1, 1, '3006020101020101'),
    (0x7f, 1, '300602017f020101'),
    (0x80, 1, '300702020080020101'),
    (1, 0xff00, '3008020101020300ff00'),
))
def test_der_signature_small(r, s, der_hex):
    der_sig = der_signature(r, s)
    assert der_sig.hex() == der_hex
    assert Signature.analyze_encoding(der_sig + b'\1') & SigEncoding.STRICT_DER


@pytest.mark.parametrize("r, s", ((CURVE_ORDER, 1), (1, CURVE_ORDER), (-1, 1)))
def test_der_signature_out_of_range(r, s):
    with pytest.raises(InvalidSignature):
        der_signature(r, s)


@pytest.mark.parametrize("s, result", (
    (0, True),
    (1, True),
    (HALF_CURVE_ORDER, True),
    (HALF_CURVE_ORDER + 1, False),
    (CURVE_ORDER - 1, False),
))
def test_is_canonical_half_order(s, result):
    assert is_canonical_half_order(s) is result
    # The predicate agrees with the low S check of canonical parsing
    sig_bytes = der_signature(1, s) + b'\1'
    assert bool(Signature.analyze_encoding(sig_bytes) & SigEncoding.LOW_S) is result


class TestSigHash:

    def test_sighashes(self):
        assert SigHash.ALL == SigHash(0x01)
        assert SigHash.NONE == SigHash(0x02)
        assert SigHash.SINGLE == SigHash(0x03)
        assert int(SigHash.SINGLE) == 3
        assert SigHash.ALL.with_anyone_can_pay() == SigHash(0x81)

    @pytest.mark.parametrize("n", range(256))
    def test_attributes(self, n):
        s = SigHash.from_byte(n)
        assert s.to_byte() == n
        assert s.anyone_can_pay is (n >= 128)
        base = n & 0x7f
        if 1 <= base <= 3:
            assert s.kind == SigHashKind(base)
        else:
            assert s.kind == SigHashKind.UNKNOWN
        if n & 0x1f in (2, 3):
            assert s.base_kind == SigHashKind(n & 0x1f)
        else:
            assert s.base_kind == SigHashKind.ALL

    @pytest.mark.parametrize("n", (-1, 256, 1000))
    def test_bad_byte(self, n):
        with pytest.raises(ValueError):
            SigHash(n)

    @pytest.mark.parametrize("n, text", (
        (0, "UNKNOWN(0x00)"),
        (1, "ALL"),
        (2, "NONE"),
        (3, "SINGLE"),
        (4, "UNKNOWN(0x04)"),
        (0x41, "UNKNOWN(0x41)"),
        (0x80, "UNKNOWN(0x80)"),
        (0x81, "ALL|ANYONE_CAN_PAY"),
        (0x82, "NONE|ANYONE_CAN_PAY"),
        (0x83, "SINGLE|ANYONE_CAN_PAY"),
        (0xa3, "UNKNOWN(0xa3)"),
    ))
    def test_to_string(self, n, text):
        assert SigHash(n).to_string() == text
        assert repr(SigHash(n)) == f'SigHash({text})'

    @pytest.mark.parametrize("sighash", range(256))
    def test_is_defined(self, sighash):
        assert SigHash(sighash).is_defined() is (sighash in defined_sighashes)

    def test_to_bytes32(self):
        assert SigHash(0x83).to_bytes32() == bytes([0x83, 0, 0, 0])

    def test_from_sig_bytes(self):
        assert SigHash.from_sig_bytes(b'') == SigHash(0)
        assert SigHash.from_sig_bytes(b'\x30\x82') == SigHash(0x82)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            SigHash.ALL.value = 2


defined_sighashes = {1, 2, 3, 0x81, 0x82, 0x83}

lax_der_testcases = [
    # Zero total length, zero R len, zero S len
    ('300002000200', '3006020100020100'),
    # 0x70 total length, R=2, S=3
    ('3070020102020103', '3006020102020103'),
    # 0x80 total length, R=2, S=3
    ('3080020102020103', '3006020102020103'),
    # 0x8101 total length, R=2, S=3
    ('308101020102020103', '3006020102020103'),
    # 0x80 total length, R=0002, S=0003
    ('30800202000202020003', '3006020102020103'),
    # 0x80 total length, Rlen=820002 R=0005, SLen=83000001 S=20
    ('3080028200020005028300000120', '3006020105020120'),
    # 0x70 total length, R=2, S=3  excess bytes
    ('3070020102020103deadbeef', '3006020102020103'),
    # R = TOO BIG, S=1  gives (0, 0)
    ('3046022170fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141020101',
     '3006020100020100'),
    # R = 1, S = TOO BIG, S=1  gives (0, 0)
    ('3046020101022170fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141',
     '3006020100020100'),
    # R = CURVE_ORDER, S=1  gives (0, 0)
    ('3046022100fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141020101',
     '3006020100020100'),
    # R = 1, S = CURVE_ORDER  gives (0, 0)
    ('3046020101022100fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141',
     '3006020100020100'),
    # R = 4, S = CURVE_ORDER - 1   gives (4, 1)
    ('3046020104022100fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364140',
     '3006020104020101'),
]


class TestSignature:

    @pytest.mark.parametrize("der_sig, r, s", serialization_testcases)
    def test_parse_lax_to_r_s(self, der_sig, r, s):
        assert Signature.parse_lax_to_r_s(der_sig, force_low_S=False) == (r, s)
        assert Signature.parse_lax_to_r_s(der_sig) == (r, min(s, CURVE_ORDER - s))

    @pytest.mark.parametrize("sig, text", (
        ('304402207f5ba050adff0567df3dcdc70d5059c4b8b8d2afc961d7545778a79cd125f0b8022013b3e5a'
         '87f3fa84333f222dc32c2c75e630efb205a3c58010aab92ab4254531001',
         '304402207f5ba050adff0567df3dcdc70d5059c4b8b8d2afc961d7545778a79cd125f0b8022013b3e5a'
         '87f3fa84333f222dc32c2c75e630efb205a3c58010aab92ab42545310[ALL]'),
        ('300602010102010183', '3006020101020101[SINGLE|ANYONE_CAN_PAY]'),
        ('300602010102010141', '3006020101020101[UNKNOWN(0x41)]'),
    ))
    def test_to_string(self, sig, text):
        assert Signature.to_string(bytes.fromhex(sig)) == text

    def test_to_string_bad(self):
        with pytest.raises(InvalidSignature):
            Signature.to_string(bytes.fromhex('310602010102010101'))

    @pytest.mark.parametrize("hex_str, result", (
        # Bad Length
        ('', 0),
        ('30' * 8, 0),
        ('30' * 74, 0),
        # Not leading 0x30
        ('310602010102010141', 0),
        # Bad total length
        ('300702010102010141', 0),
        ('300502010102010141', 0),
        # Bad R length
        ('300602610902010141', 0),
        # Bad S length
        ('300602010102020141', 0),
        # R not integer
        ('300601010002010041', 0),
        # R length zero
        ('300602000202010041', 0),
        # R negative
        ('300602018102010141', 0),
        # R unnecessary leading zero
        ('30070202000102010141', 0),
        # S not ingeger
        ('300602010001010041', 0),
        # S length zero
        ('300602020101020041', 0),
        # S negative
        ('300602010102019141', 0),
        # S unnecessary leading zero
        ('30070201010202007141', 0),
        # Not low S
        ('3046022100820121109528efda8bb20ca28788639e5ba5b365e0a84f8bd85744321e7312c6022100a7c86a'
         '21446daa405306fe10d0a9906e37d1a2c6b6fdfaaf6700053058029bbe41', SigEncoding.STRICT_DER),
        ('3045022100b135074e08cc93904a1712b2600d3cb01899a5b1cc7498caa4b8585bcf5f27e7022074ab5440'
         '45285baef0a63f0fb4c95e577dcbf5c969c0bf47c7da8e478909d66941',
         SigEncoding.STRICT_DER | SigEncoding.LOW_S),
        # R = S = 1
        ('300602010102010141', SigEncoding.STRICT_DER | SigEncoding.LOW_S),
        # R = S = 0
        ('300602010002010041', SigEncoding.STRICT_DER | SigEncoding.LOW_S),
        # R = 1, S = HALF_CURVE_ORDER
        ('302502010102207fffffffffffffffffffffffffffffff5d576e7357a4501ddfe92f46681b20a041',
         SigEncoding.STRICT_DER | SigEncoding.LOW_S),
        # R = 1, S = HALF_CURVE_ORDER + 1
        ('302502010102207fffffffffffffffffffffffffffffff5d576e7357a4501ddfe92f46681b20a141',
         SigEncoding.STRICT_DER),
    ))
    def test_analyze_encoding(self, hex_str, result):
        raw_sig = bytes.fromhex(hex_str)
        assert Signature.analyze_encoding(raw_sig) == result

    @pytest.mark.parametrize("sig_hex", (
        # Too short
        '',
        # Not 0x30 at start
        '00',
        # Too short with -0 length byte
        '3080',
        # Too short with -1 length byte
        '3081',
        # R not integer
        '300001',
        # RLen not present
        '30000281',
        # R not present
        '30000220',
        # S not present
        '3000020108',
        # S not integer
        '300002010801',
        # SLen not present
        '300002010802',
        # SLen not present
        '30000201080281',
        # S not present
        '30000201080201',
        # S missing a byte
        '3000020108020201',
    ))
    def test_parse_lax_bad(self, sig_hex):
        with pytest.raises(InvalidSignature) as e:
            Signature.parse_lax_to_r_s(bytes.fromhex(sig_hex))
        assert 'invalid lax DER encoding' in str(e.value)

    @pytest.mark.parametrize("sig_hex, normalized", lax_der_testcases)
    def test_parse_lax_good(self, sig_hex, normalized):
        r, s = Signature.parse_lax_to_r_s(bytes.fromhex(sig_hex))
        assert der_signature(r, s).hex() == normalized

    @pytest.mark.parametrize("sig_hex, normalized", lax_der_testcases)
    def test_sighash(self, sig_hex, normalized):
        sighash_byte = random.randrange(0, 256)
        sig_bytes = bytes.fromhex(sig_hex) + pack_byte(sighash_byte)
        assert Signature.sighash(sig_bytes) == SigHash(sighash_byte)


class TestTxSignature:

    def test_from_bytes(self, low_s_signature):
        sig_bytes = low_s_signature.to_bytes()
        assert sig_bytes[-1] == 0x01
        assert TxSignature.from_bytes(sig_bytes) == low_s_signature
        assert TxSignature.from_bytes_canonical(sig_bytes) == low_s_signature

    def test_from_bytes_lax(self):
        sig_bytes = bytes.fromhex('30800202000202020003') + b'\2'
        assert TxSignature.from_bytes(sig_bytes) == TxSignature(2, 3, SigHash.NONE)

    @pytest.mark.parametrize("sig_hex", ('', '00', '3081'))
    def test_from_bytes_bad(self, sig_hex):
        with pytest.raises(InvalidSignature):
            TxSignature.from_bytes(bytes.fromhex(sig_hex))

    def test_from_bytes_high_s(self, high_s_signature):
        sig_bytes = high_s_signature.to_bytes()
        # The S value is retained
        assert TxSignature.from_bytes(sig_bytes) == high_s_signature
        with pytest.raises(NonCanonicalSignature) as e:
            TxSignature.from_bytes_canonical(sig_bytes)
        assert str(e.value) == 'signature has high S value'

    def test_from_bytes_canonical_non_strict(self):
        with pytest.raises(NonCanonicalSignature) as e:
            TxSignature.from_bytes_canonical(bytes.fromhex('30070202000102010101'))
        assert 'strict DER' in str(e.value)

    def test_from_bytes_canonical_undefined_sighash(self, low_s_signature):
        sig_bytes = low_s_signature.to_der() + b'\x40'
        with pytest.raises(NonCanonicalSignature) as e:
            TxSignature.from_bytes_canonical(sig_bytes)
        assert str(e.value) == 'undefined sighash type UNKNOWN(0x40)'

    def test_sighash_validated(self):
        with pytest.raises(TypeError):
            TxSignature(1, 1, 1)

    def test_is_canonical(self, low_s_signature, high_s_signature):
        assert low_s_signature.is_canonical()
        assert not high_s_signature.is_canonical()
        assert not TxSignature(1, 1, SigHash(0x40)).is_canonical()

    @pytest.mark.parametrize("s", (0, 1, HALF_CURVE_ORDER, HALF_CURVE_ORDER + 1))
    def test_is_canonical_matches_canonical_parsing(self, s):
        signature = TxSignature(1, s, SigHash.ALL)
        if signature.is_canonical():
            assert TxSignature.from_bytes_canonical(signature.to_bytes()) == signature
        else:
            with pytest.raises(NonCanonicalSignature):
                TxSignature.from_bytes_canonical(signature.to_bytes())

    def test_to_low_s(self, low_s_signature, high_s_signature):
        assert low_s_signature.to_low_s() is low_s_signature
        low = high_s_signature.to_low_s()
        assert low.s == CURVE_ORDER - high_s_signature.s
        assert low.r == high_s_signature.r
        assert low.sighash == high_s_signature.sighash
        assert low.is_canonical()

    def test_coincurve_signatures(self):
        key = PrivateKey()
        message_hash = sha256(b'message')
        der_sig = key.sign(message_hash, hasher=None)
        sig_bytes = der_sig + pack_byte(SigHash.SINGLE.to_byte())
        assert Signature.analyze_encoding(sig_bytes) == (SigEncoding.STRICT_DER
                                                         | SigEncoding.LOW_S)
        signature = TxSignature.from_bytes_canonical(sig_bytes)
        assert signature.sighash == SigHash.SINGLE
        assert signature.to_der() == der_sig
        assert signature.to_bytes() == sig_bytes
        assert key.public_key.verify(signature.to_der(), message_hash, hasher=None)
        assert be_bytes_to_int(der_sig[4: 4 + der_sig[3]]) == signature.r
