"""
Tests for the CipherEngine class.
"""

import hashlib
from datetime import datetime, timezone

import pytest

from indaleko_fieldcrypt.encryption import CanonicalCodec, CipherEngine, FieldKind, derive_key_and_iv
from indaleko_fieldcrypt.errors import CipherError, ConfigError


SECRET = "icanhazcheezburger"


class TestCipherEngine:
    """Tests for the CipherEngine class."""

    def setup_method(self) -> None:
        """Set up the test environment."""
        self.engine = CipherEngine(SECRET)

    def test_known_string_ciphertext(self) -> None:
        """Test the ciphertext of a string against a stored value."""
        assert self.engine.encrypt(b"hide me!") == "2dc9eb06e3efa172"

    @pytest.mark.parametrize(
        "kind, value, expected",
        [
            (
                FieldKind.OBJECT,
                {"nested": "some stuff to encrypt"},
                "3e82e106b0f6a137e710374b8b3be61816e5e48dcaaeb16b57016f58ccb28a0967e4",
            ),
            (FieldKind.ARRAY, [1, 2, 3], "1e91a351efb199"),
            (
                FieldKind.TIMESTAMP,
                datetime(2017, 1, 28, 22, 4, 8, 338000, tzinfo=timezone.utc),
                "6792bf52f4aff462e8182d6cd664b90851aba1d382bdf63c2d46",
            ),
        ],
    )
    def test_known_opaque_ciphertext(self, kind: FieldKind, value: object, expected: str) -> None:
        """Test the ciphertext of encoded opaque values against stored values."""
        assert self.engine.encrypt(CanonicalCodec.encode(kind, value)) == expected

    def test_deterministic(self) -> None:
        """Test that equal plaintext and secret give equal ciphertext."""
        first = self.engine.encrypt(b"same value")
        second = CipherEngine(SECRET).encrypt(b"same value")

        assert first == second
        assert first != self.engine.encrypt(b"other value")

    def test_ciphertext_is_lowercase_hex(self) -> None:
        """Test the ciphertext format and length."""
        ciphertext = self.engine.encrypt(b"\x00\x01 some bytes")

        assert ciphertext == ciphertext.lower()
        assert len(ciphertext) == 2 * len(b"\x00\x01 some bytes")
        bytes.fromhex(ciphertext)

    def test_round_trip(self) -> None:
        """Test that decrypt reverses encrypt."""
        assert self.engine.decrypt(self.engine.encrypt("snoop".encode("utf-8"))) == b"snoop"
        assert self.engine.decrypt(self.engine.encrypt(b"")) == b""

    def test_wrong_secret(self) -> None:
        """Test that decrypting with a different secret fails."""
        plaintext = b"The quick brown fox jumps over the lazy dog, again and again."
        ciphertext = self.engine.encrypt(plaintext)

        with pytest.raises(CipherError):
            CipherEngine("not the right secret").decrypt(ciphertext)

    def test_wrong_secret_short_value(self) -> None:
        """Test that a short value under a wrong secret never decrypts to the plaintext."""
        ciphertext = self.engine.encrypt(b"snoop")
        undetected = 0

        for i in range(200):
            try:
                plaintext = CipherEngine(f"wrong secret {i}").decrypt(ciphertext)
            except CipherError:
                continue
            undetected += 1
            assert plaintext != b"snoop"

        # Short values can decode as text under a wrong secret, but rarely
        assert undetected < 50

    @pytest.mark.parametrize("ciphertext", ["abc", "zz11", "not hex at all"])
    def test_malformed_hex(self, ciphertext: str) -> None:
        """Test that non-hex ciphertext fails."""
        with pytest.raises(CipherError):
            self.engine.decrypt(ciphertext)

    def test_non_string_ciphertext(self) -> None:
        """Test that ciphertext must be a string."""
        with pytest.raises(CipherError):
            self.engine.decrypt(b"2dc9eb06e3efa172")

    @pytest.mark.parametrize("secret", ["", "   ", None])
    def test_empty_secret(self, secret: object) -> None:
        """Test that an engine needs a secret."""
        with pytest.raises(ConfigError):
            CipherEngine(secret)

    def test_key_derivation(self) -> None:
        """Test the sizes and first block of the derived key material."""
        key, iv = derive_key_and_iv(SECRET)

        assert len(key) == 32
        assert len(iv) == 16
        assert key[:16] == hashlib.md5(SECRET.encode("utf-8")).digest()
        assert derive_key_and_iv("another secret") != (key, iv)

    def test_repr_hides_secret(self) -> None:
        """Test that the engine's repr does not reveal key material."""
        assert SECRET not in repr(self.engine)
        assert "AES-256-CTR" in repr(self.engine)
