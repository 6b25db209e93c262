"""Password-based key derivation and authenticated encryption.

Keys come from Argon2id (argon2-cffi) and protect data with
ChaCha20-Poly1305 (cryptography). Nonces are random and generated per
encryption; salts are random and generated once per encrypted file.
"""

import logging
import secrets
from dataclasses import asdict, dataclass

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .errors import AuthenticationError, FormatError, PasswordPolicyError

logger = logging.getLogger(__name__)

# --- Configuration ---
KDF_ALGORITHM = "argon2id"
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 256
MAX_CONTENT_SIZE = 100 * 1024 * 1024

# Limits on KDF costs read from a file header, which is unauthenticated until
# the key is derived
MAX_TIME_COST = 16
MAX_MEMORY_COST = 1024 * 1024  # KiB, 1 GiB
MAX_PARALLELISM = 16


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters, stored in the header of every encrypted file."""

    time_cost: int = 3
    memory_cost: int = 65536  # KiB
    parallelism: int = 1
    hash_len: int = KEY_SIZE

    def to_header(self):
        return {"algorithm": KDF_ALGORITHM, **asdict(self)}

    @classmethod
    def from_header(cls, data):
        if not isinstance(data, dict) or data.get("algorithm") != KDF_ALGORITHM:
            raise FormatError("unsupported key derivation settings")
        try:
            params = cls(
                time_cost=int(data["time_cost"]),
                memory_cost=int(data["memory_cost"]),
                parallelism=int(data["parallelism"]),
                hash_len=int(data.get("hash_len", KEY_SIZE)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise FormatError("invalid key derivation settings") from exc
        if params.hash_len != KEY_SIZE or min(params.time_cost, params.memory_cost, params.parallelism) < 1:
            raise FormatError("invalid key derivation settings")
        if (params.time_cost > MAX_TIME_COST or params.memory_cost > MAX_MEMORY_COST
                or params.parallelism > MAX_PARALLELISM or params.memory_cost < 8 * params.parallelism):
            raise FormatError("key derivation settings out of range")
        return params


DEFAULT_KDF_PARAMS = KdfParams()


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_SIZE)


def generate_nonce() -> bytes:
    return secrets.token_bytes(NONCE_SIZE)


def validate_new_password(password: str) -> None:
    """Raise PasswordPolicyError unless the password length is acceptable."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(f"Password too short (minimum {MIN_PASSWORD_LENGTH} characters).")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise PasswordPolicyError(f"Password too long (maximum {MAX_PASSWORD_LENGTH} characters).")


def derive_key(password: str, salt: bytes, params: KdfParams = DEFAULT_KDF_PARAMS) -> bytes:
    """Derives a 256-bit key from the password and salt with Argon2id.

    Deliberately slow and memory-hard; the same inputs always give the same key.
    """
    if len(salt) != SALT_SIZE:
        raise FormatError("invalid salt length")
    try:
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=salt,
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=params.hash_len,
            type=Type.ID,
        )
    except HashingError as exc:
        raise FormatError("key derivation failed") from exc


def encrypt(key: bytes, nonce: bytes, plaintext: bytes, associated_data: bytes | None = None) -> bytes:
    """Encrypts with ChaCha20-Poly1305. Returns ciphertext with the 16-byte tag appended."""
    if len(plaintext) > MAX_CONTENT_SIZE:
        raise FormatError("content too large to encrypt")
    return ChaCha20Poly1305(bytes(key)).encrypt(nonce, plaintext, associated_data)


def decrypt(key: bytes, nonce: bytes, ciphertext: bytes, associated_data: bytes | None = None) -> bytes:
    """Decrypts and verifies. Raises AuthenticationError if the tag does not match."""
    if len(nonce) != NONCE_SIZE:
        raise FormatError("invalid nonce length")
    if len(ciphertext) > MAX_CONTENT_SIZE + 16:
        raise FormatError("ciphertext too large")
    try:
        return ChaCha20Poly1305(bytes(key)).decrypt(nonce, ciphertext, associated_data)
    except InvalidTag:
        # Wrong password and tampering are indistinguishable here
        raise AuthenticationError("decryption failed") from None


class CipherSession:
    """Key material for one unlocked notes file.

    The key is derived once, kept only in memory and wiped by lock().
    """

    def __init__(self, salt: bytes, params: KdfParams, key: bytes):
        self.salt = salt
        self.params = params
        self._key = bytearray(key)

    @classmethod
    def derive(cls, password, salt=None, params=None):
        """Runs the KDF once. A missing salt means a brand new encrypted file."""
        salt = salt if salt is not None else generate_salt()
        params = params or DEFAULT_KDF_PARAMS
        logger.debug("Deriving key (t=%d, m=%d KiB)", params.time_cost, params.memory_cost)
        return cls(salt, params, derive_key(password, salt, params))

    @property
    def is_unlocked(self):
        return bool(self._key)

    def seal(self, plaintext, associated_data=None):
        """Encrypts under a fresh nonce. Returns (nonce, ciphertext)."""
        self._require_key()
        nonce = generate_nonce()
        return nonce, encrypt(self._key, nonce, plaintext, associated_data)

    def open(self, nonce, ciphertext, associated_data=None):
        self._require_key()
        return decrypt(self._key, nonce, ciphertext, associated_data)

    def lock(self):
        for i in range(len(self._key)):
            self._key[i] = 0
        self._key = bytearray()

    def _require_key(self):
        if not self._key:
            raise AuthenticationError("notes are locked")
