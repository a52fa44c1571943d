# clinic/crypto.py
import binascii
import logging
import secrets
from dataclasses import dataclass
from typing import ClassVar, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

ALG = "AES256-GCM"
KEY_LENGTH = 32
IV_LENGTH = 16
TAG_HEX_LENGTH = 32          # 16-byte GCM tag, hex encoded
PBKDF2_ITERATIONS = 10_000


@dataclass(frozen=True)
class EncryptedRecord:
    """Ciphertext (tag appended) and IV, both hex. Only meaningful together."""
    encrypted_text: Optional[str]
    iv: Optional[str]

    EMPTY: ClassVar["EncryptedRecord"]

    @property
    def is_empty(self) -> bool:
        return not self.encrypted_text or not self.iv


EncryptedRecord.EMPTY = EncryptedRecord(None, None)


@dataclass(frozen=True)
class Decrypted:
    """Outcome of a decrypt call. Failure and missing input are the same outcome."""
    value: Optional[str] = None

    ABSENT: ClassVar["Decrypted"]

    @property
    def ok(self) -> bool:
        return self.value is not None

    def __bool__(self) -> bool:
        return self.ok


Decrypted.ABSENT = Decrypted(None)


class FieldCipher:
    """
    Per-user authenticated encryption for short text columns.

    Every key is rederived from (system secret, user id), so nothing
    per-user is stored. A record encrypted for one user cannot be opened
    with another user's id.
    """

    def __init__(self, secret: str, iterations: int = PBKDF2_ITERATIONS):
        if secret is None:
            raise ValueError("secret is required")
        self._secret = secret
        self._iterations = iterations

    def derive_key_for_user(self, user_id: int) -> bytes:
        # The secret is part of both salt and password material; existing
        # ciphertexts depend on this exact layout.
        salt = f"{self._secret}-{user_id}".encode("utf-8")
        material = f"user-{user_id}-key-{self._secret}".encode("utf-8")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self._iterations,
        )
        return kdf.derive(material)

    def encrypt(self, plain_text: Optional[str], user_id: int) -> EncryptedRecord:
        if not plain_text:
            return EncryptedRecord.EMPTY

        iv = secrets.token_bytes(IV_LENGTH)
        key = self.derive_key_for_user(user_id)
        # AESGCM returns ciphertext || tag
        sealed = AESGCM(key).encrypt(iv, plain_text.encode("utf-8"), None)
        return EncryptedRecord(encrypted_text=sealed.hex(), iv=iv.hex())

    def decrypt(self, encrypted_text: Optional[str], iv: Optional[str], user_id: int) -> Decrypted:
        if not encrypted_text or not iv:
            return Decrypted.ABSENT

        try:
            if len(encrypted_text) < TAG_HEX_LENGTH:
                raise ValueError("ciphertext shorter than tag")
            ciphertext = binascii.unhexlify(encrypted_text[:-TAG_HEX_LENGTH])
            tag = binascii.unhexlify(encrypted_text[-TAG_HEX_LENGTH:])
            nonce = binascii.unhexlify(iv)

            key = self.derive_key_for_user(user_id)
            plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
            return Decrypted(plaintext.decode("utf-8"))
        except (InvalidTag, ValueError) as e:
            # binascii.Error and UnicodeDecodeError are ValueErrors
            logger.debug("Field decrypt failed for user %s: %s", user_id, type(e).__name__)
            return Decrypted.ABSENT
