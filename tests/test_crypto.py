"""
Tests du chiffrement des identifiants de passerelle.
"""

import pytest

from app.core.crypto import CredentialDecryptionError, decrypt, encrypt, mask_key


class TestCredentialEncryption:
    def test_encrypt_then_decrypt(self) -> None:
        token = encrypt("rzp_secret_value")

        assert token != "rzp_secret_value"
        assert decrypt(token) == "rzp_secret_value"

    def test_stored_format_is_iv_and_ciphertext(self) -> None:
        iv_hex, separator, cipher_hex = encrypt("abc").partition(":")

        assert separator == ":"
        assert len(bytes.fromhex(iv_hex)) == 12
        # 3 octets de texte + 16 octets de tag GCM
        assert len(bytes.fromhex(cipher_hex)) == 3 + 16

    def test_random_iv_per_call(self) -> None:
        assert encrypt("same") != encrypt("same")

    def test_wrong_master_key_is_rejected(self) -> None:
        token = encrypt("value", master_key="first-master-key")

        with pytest.raises(CredentialDecryptionError):
            decrypt(token, master_key="second-master-key")

    def test_tampered_ciphertext_is_rejected(self) -> None:
        iv_hex, _, cipher_hex = encrypt("value").partition(":")
        flipped = format(int(cipher_hex[0], 16) ^ 1, "x") + cipher_hex[1:]

        with pytest.raises(CredentialDecryptionError):
            decrypt(f"{iv_hex}:{flipped}")

    @pytest.mark.parametrize("token", ["", "no-separator", "zz:zz", None])
    def test_malformed_values(self, token) -> None:
        with pytest.raises(CredentialDecryptionError):
            decrypt(token)


class TestMaskKey:
    def test_keeps_razorpay_prefix(self) -> None:
        assert mask_key("rzp_test_AbCdEfGh1234") == "rzp_test_****1234"
        assert mask_key("rzp_live_ZZZZ9876") == "rzp_live_****9876"

    def test_short_and_empty_values(self) -> None:
        assert mask_key("") == ""
        assert mask_key("abc") == "***"
        assert mask_key("key_12345") == "****2345"
