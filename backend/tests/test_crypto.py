# python
import pytest

from clinic.crypto import (
    Decrypted,
    EncryptedRecord,
    FieldCipher,
    IV_LENGTH,
    KEY_LENGTH,
    TAG_HEX_LENGTH,
)


def _flip_hex_char(s: str, index: int) -> str:
    # Flip the lowest bit of the nibble at `index`
    flipped = format(int(s[index], 16) ^ 1, "x")
    return s[:index] + flipped + s[index + 1:]


def test_hello_scenario(cipher):
    record = cipher.encrypt("hello", 42)

    assert len(record.iv) == 2 * IV_LENGTH
    assert len(record.encrypted_text) == 2 * len("hello".encode("utf-8")) + TAG_HEX_LENGTH
    assert cipher.decrypt(record.encrypted_text, record.iv, 42) == Decrypted("hello")
    assert cipher.decrypt(record.encrypted_text, record.iv, 43) is Decrypted.ABSENT


@pytest.mark.parametrize("text", ["a", "Paciente relatou melhora no quadro de ansiedade.", "ção ✓ 日本", "x" * 4096])
def test_round_trip(cipher, text):
    record = cipher.encrypt(text, 7)
    result = cipher.decrypt(record.encrypted_text, record.iv, 7)
    assert result.ok
    assert result.value == text
    # multi-byte text: hex length follows UTF-8 byte length, not characters
    assert len(record.encrypted_text) == 2 * len(text.encode("utf-8")) + TAG_HEX_LENGTH


def test_key_derivation_is_deterministic():
    a = FieldCipher("s3cr3t").derive_key_for_user(42)
    b = FieldCipher("s3cr3t").derive_key_for_user(42)
    assert a == b
    assert len(a) == KEY_LENGTH


def test_key_differs_per_user_and_secret(cipher):
    assert cipher.derive_key_for_user(42) != cipher.derive_key_for_user(43)
    assert FieldCipher("other").derive_key_for_user(42) != cipher.derive_key_for_user(42)


def test_key_derivation_matches_pbkdf2_layout(cipher):
    # salt "<secret>-<id>", password "user-<id>-key-<secret>", sha256, 10k rounds
    import hashlib
    expected = hashlib.pbkdf2_hmac("sha256", b"user-42-key-s3cr3t", b"s3cr3t-42", 10_000, 32)
    assert cipher.derive_key_for_user(42) == expected


def test_fresh_iv_per_call(cipher):
    first = cipher.encrypt("same text", 1)
    second = cipher.encrypt("same text", 1)
    assert first.iv != second.iv
    assert first.encrypted_text != second.encrypted_text


def test_secret_change_breaks_decrypt(cipher):
    record = cipher.encrypt("hello", 42)
    assert FieldCipher("rotated").decrypt(record.encrypted_text, record.iv, 42) is Decrypted.ABSENT


@pytest.mark.parametrize("index", [0, 5, 9, -1, -TAG_HEX_LENGTH])
def test_tampered_ciphertext_or_tag(cipher, index):
    record = cipher.encrypt("hello", 42)
    idx = index % len(record.encrypted_text)
    tampered = _flip_hex_char(record.encrypted_text, idx)
    assert cipher.decrypt(tampered, record.iv, 42) is Decrypted.ABSENT


@pytest.mark.parametrize("index", [0, 16, 31])
def test_tampered_iv(cipher, index):
    record = cipher.encrypt("hello", 42)
    assert cipher.decrypt(record.encrypted_text, _flip_hex_char(record.iv, index), 42) is Decrypted.ABSENT


@pytest.mark.parametrize("encrypted_text, iv", [
    ("zz" * 20, "00" * 16),          # not hex
    ("abc", "00" * 16),              # shorter than the tag
    ("a" * 33, "00" * 16),           # odd-length ciphertext part
    ("00" * 20, "0"),                # odd-length iv
    ("00" * 20, "00" * 2),           # iv too short for GCM
])
def test_malformed_input_is_absent(cipher, encrypted_text, iv):
    assert cipher.decrypt(encrypted_text, iv, 42) is Decrypted.ABSENT


def test_truncated_ciphertext(cipher):
    record = cipher.encrypt("hello world", 42)
    assert cipher.decrypt(record.encrypted_text[2:], record.iv, 42) is Decrypted.ABSENT


@pytest.mark.parametrize("value", [None, ""])
def test_encrypt_empty_is_noop(cipher, value):
    record = cipher.encrypt(value, 42)
    assert record == EncryptedRecord(None, None)
    assert record.is_empty


@pytest.mark.parametrize("encrypted_text, iv", [(None, "00" * 16), ("", "00" * 16), ("00" * 20, None), ("00" * 20, "")])
def test_decrypt_missing_input_is_absent(cipher, encrypted_text, iv):
    result = cipher.decrypt(encrypted_text, iv, 42)
    assert result is Decrypted.ABSENT
    assert not result
    assert result.value is None


def test_records_are_immutable(cipher):
    record = cipher.encrypt("hello", 42)
    with pytest.raises(AttributeError):
        record.iv = "00"


@pytest.mark.parametrize("where", ["ciphertext", "tag", "iv"])
def test_whitespace_in_hex_is_absent(cipher, where):
    record = cipher.encrypt("hello", 42)
    ct, iv = record.encrypted_text, record.iv
    if where == "ciphertext":
        ct = ct[:2] + " " + ct[2:]
    elif where == "tag":
        ct = ct[:-TAG_HEX_LENGTH] + ct[-TAG_HEX_LENGTH:-2] + " " + ct[-2:]
    else:
        iv = iv[:2] + " " + iv[2:]
    assert cipher.decrypt(ct, iv, 42) is Decrypted.ABSENT


def test_non_ascii_hex_is_absent(cipher):
    record = cipher.encrypt("hello", 42)
    assert cipher.decrypt("é" + record.encrypted_text[1:], record.iv, 42) is Decrypted.ABSENT
