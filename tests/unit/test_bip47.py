"""
Unit tests for BIP47 payment code handling.
"""

import base58
import pytest

from bip47_terminal.bip47 import (
    NOTIFICATION_PATH,
    PAYMENT_CODE_LENGTH,
    InvalidPaymentCode,
    PaymentCode,
    encode_payment_code,
    notification_pubkey_for,
    validate_payment_code,
)


def _flip_last_char(value):
    last = "2" if value[-1] != "2" else "3"
    return value[:-1] + last


class TestPaymentCode:
    """Test payment code decoding."""

    def test_wallet_code_shape(self, wallet):
        assert wallet.payment_code.startswith("PM8T")
        assert len(wallet.payment_code) == PAYMENT_CODE_LENGTH

    def test_parse_round_trips_components(self, wallet):
        code = PaymentCode.parse(wallet.payment_code)

        assert code.version == 1
        assert code.features == 0
        assert code.pubkey == wallet.master.public_key.format(compressed=True)
        assert code.chaincode == wallet.chaincode
        assert code.encoded == wallet.payment_code
        assert code.sign in (0x02, 0x03)

    def test_notification_pubkey_matches_wallet_key(self, wallet):
        expected = wallet.notification_key.public_key.format(compressed=True)

        assert notification_pubkey_for(wallet.payment_code) == expected

    def test_distinct_wallets_have_distinct_notification_keys(self, wallet, other_wallet):
        assert notification_pubkey_for(wallet.payment_code) != notification_pubkey_for(other_wallet.payment_code)

    @pytest.mark.parametrize("value", ["", "hello", "PM8Tnotbase58!!", "1111111111"])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises(InvalidPaymentCode):
            PaymentCode.parse(value)

    def test_parse_rejects_bad_checksum(self, wallet):
        with pytest.raises(InvalidPaymentCode):
            PaymentCode.parse(_flip_last_char(wallet.payment_code))

    def test_parse_rejects_wrong_prefix(self, wallet):
        raw = base58.b58decode_check(wallet.payment_code)
        bogus = base58.b58encode_check(b"\x48" + raw[1:]).decode()

        with pytest.raises(InvalidPaymentCode, match="Not a BIP47"):
            PaymentCode.parse(bogus)

    def test_parse_rejects_unknown_version(self, wallet):
        raw = bytearray(base58.b58decode_check(wallet.payment_code))
        raw[1] = 0x02
        bogus = base58.b58encode_check(bytes(raw)).decode()

        with pytest.raises(InvalidPaymentCode, match="version"):
            PaymentCode.parse(bogus)

    def test_invalid_payment_code_is_value_error(self):
        with pytest.raises(ValueError):
            notification_pubkey_for("not-a-payment-code")

    def test_encode_rejects_bad_lengths(self):
        with pytest.raises(ValueError):
            encode_payment_code(b"\x02" * 10, b"\x00" * 32)


class TestValidatePaymentCode:
    """Test the lab validator report."""

    def test_valid_code_reports_details(self, wallet):
        result = validate_payment_code(wallet.payment_code)

        assert result["valid"] is True
        assert all(result["checks"].values())
        details = result["details"]
        assert details["notificationPath"] == NOTIFICATION_PATH
        assert details["version"] == "0x01"
        assert details["chaincode"] == wallet.chaincode.hex()
        assert details["notificationPubkey"] == wallet.notification_key.public_key.format(compressed=True).hex()

    def test_surrounding_whitespace_is_ignored(self, wallet):
        assert validate_payment_code(f"  {wallet.payment_code}\n")["valid"] is True

    def test_bad_checksum(self, wallet):
        result = validate_payment_code(_flip_last_char(wallet.payment_code))

        assert result["valid"] is False
        assert result["checks"]["prefix"] is True
        assert result["checks"]["checksum"] is False
        assert result["details"] is None

    def test_non_base58(self):
        result = validate_payment_code("PM8T0OIl")

        assert result["valid"] is False
        assert result["checks"]["base58"] is False
        assert result["checks"]["length"] is False

    def test_empty_value(self):
        result = validate_payment_code("")

        assert result["valid"] is False
        assert not any(result["checks"].values())
