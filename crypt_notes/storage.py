"""Reading and writing the notes file.

The file is JSON in one of two framings:

* plaintext: the notes document itself, readable and hand-editable;
* encrypted: a header (format, version, KDF settings, salt, nonce) and the
  ChaCha20-Poly1305 ciphertext of the plaintext document, base64 encoded.

Every write goes to a temporary file in the target directory and is renamed
over the target, so the path always holds a complete old or new file.
"""

import base64
import binascii
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .crypto import SALT_SIZE, CipherSession, KdfParams, validate_new_password
from .errors import AuthenticationError, FormatError, PasswordRequired, StorageIOError
from .models import ENCRYPTED_FORMAT, FORMAT_VERSION
from .repository import NoteRepository

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 140 * 1024 * 1024  # ciphertext plus base64 overhead
FILE_MODE = 0o600


class EncryptedEnvelope(BaseModel):
    """On-disk framing of an encrypted notes file."""

    format: str = ENCRYPTED_FORMAT
    version: int = FORMAT_VERSION
    kdf: dict
    salt: str
    nonce: str
    ciphertext: str

    def associated_data(self) -> bytes:
        # Header fields are authenticated along with the ciphertext
        header = {"format": self.format, "version": self.version, "kdf": self.kdf, "salt": self.salt}
        return json.dumps(header, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64d(text: str, what: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise FormatError(f"invalid {what} encoding") from exc


# --- Raw file access ---

def read_raw(path) -> bytes | None:
    """File contents, or None when the file does not exist yet."""
    path = Path(path)
    try:
        if path.stat().st_size > MAX_FILE_SIZE:
            raise FormatError("notes file too large")
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageIOError(f"cannot read {path}: {exc.strerror or exc}") from exc


def atomic_write(path, data: bytes, mode: int = FILE_MODE) -> None:
    """Replace path with data without ever exposing a partial file."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        raise StorageIOError(f"cannot write {path}: {exc.strerror or exc}") from exc
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise StorageIOError(f"cannot write {path}: {exc.strerror or exc}") from exc


def parse_envelope(raw: bytes) -> EncryptedEnvelope | None:
    """The encrypted header, or None when raw is not an encrypted file."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(data, dict) or data.get("format") != ENCRYPTED_FORMAT:
        return None
    try:
        envelope = EncryptedEnvelope.model_validate(data)
    except ValidationError as exc:
        raise FormatError("invalid encrypted file header") from exc
    if envelope.version != FORMAT_VERSION:
        raise FormatError(f"unsupported encrypted file version {envelope.version!r}")
    return envelope


def is_encrypted(path) -> bool:
    raw = read_raw(path)
    return raw is not None and parse_envelope(raw) is not None


def seal(repository: NoteRepository, session: CipherSession) -> bytes:
    """Serialize and encrypt the notes into the encrypted file framing."""
    envelope = EncryptedEnvelope(
        kdf=session.params.to_header(),
        salt=_b64e(session.salt),
        nonce="",
        ciphertext="",
    )
    nonce, ciphertext = session.seal(repository.serialize(), envelope.associated_data())
    envelope.nonce = _b64e(nonce)
    envelope.ciphertext = _b64e(ciphertext)
    return envelope.model_dump_json(indent=2).encode("utf-8")


def _unseal(envelope: EncryptedEnvelope, password: str) -> tuple[NoteRepository, CipherSession]:
    salt = _b64d(envelope.salt, "salt")
    if len(salt) != SALT_SIZE:
        raise FormatError("invalid salt length")
    nonce = _b64d(envelope.nonce, "nonce")
    ciphertext = _b64d(envelope.ciphertext, "ciphertext")
    session = CipherSession.derive(password, salt, KdfParams.from_header(envelope.kdf))
    try:
        plaintext = session.open(nonce, ciphertext, envelope.associated_data())
        return NoteRepository.deserialize(plaintext), session
    except Exception:
        session.lock()
        raise


class NoteFile:
    """The notes file of one session, with its key material when encrypted."""

    def __init__(self, path, session: CipherSession | None = None) -> None:
        self.path = Path(path)
        self.session = session

    @property
    def encrypted(self) -> bool:
        return self.session is not None

    def exists(self) -> bool:
        return self.path.exists()

    def is_encrypted_on_disk(self) -> bool:
        return is_encrypted(self.path)

    def load(self) -> NoteRepository:
        """Load a plaintext (or missing) file."""
        raw = read_raw(self.path)
        if raw is None:
            logger.info("No notes file at %s, starting empty", self.path)
            return NoteRepository()
        if parse_envelope(raw) is not None:
            raise PasswordRequired(f"{self.path} is encrypted")
        repository = NoteRepository.deserialize(raw)
        logger.info("Loaded %d notes from %s", len(repository), self.path)
        return repository

    def unlock(self, password: str) -> NoteRepository:
        """Derive the key once, decrypt and load an encrypted file."""
        raw = read_raw(self.path)
        envelope = parse_envelope(raw) if raw is not None else None
        if envelope is None:
            raise FormatError(f"{self.path} is not an encrypted notes file")
        try:
            repository, session = _unseal(envelope, password)
        except (AuthenticationError, FormatError):
            logger.warning("Unlock failed for %s", self.path)
            raise
        self.lock()
        self.session = session
        logger.info("Unlocked %s, %d notes", self.path, len(repository))
        return repository

    def save(self, repository: NoteRepository) -> None:
        if self.session is not None:
            data = seal(repository, self.session)
        else:
            data = repository.serialize()
        atomic_write(self.path, data)
        logger.info("Saved %d notes to %s (%s)", len(repository), self.path,
                    "encrypted" if self.encrypted else "plaintext")

    def enable_encryption(self, repository: NoteRepository, password: str, params: KdfParams | None = None) -> None:
        """Rewrite the whole file encrypted under a new salt and key."""
        validate_new_password(password)
        session = CipherSession.derive(password, params=params)
        try:
            atomic_write(self.path, seal(repository, session))
        except Exception:
            session.lock()
            raise
        self.lock()
        self.session = session
        logger.info("Encryption enabled for %s", self.path)

    def disable_encryption(self, repository: NoteRepository) -> None:
        """Rewrite the whole file as plaintext and drop the key."""
        atomic_write(self.path, repository.serialize())
        self.lock()
        logger.info("Encryption disabled for %s", self.path)

    def lock(self) -> None:
        if self.session is not None:
            self.session.lock()
            self.session = None


def load(path, password: str | None = None) -> NoteRepository:
    note_file = NoteFile(path)
    if not note_file.is_encrypted_on_disk():
        return note_file.load()
    if password is None:
        raise PasswordRequired(f"{path} is encrypted")
    try:
        return note_file.unlock(password)
    finally:
        note_file.lock()


def save(path, repository: NoteRepository, password: str | None = None, params: KdfParams | None = None) -> None:
    """Write the notes, encrypted under a new salt when a password is given."""
    if password is None:
        atomic_write(path, repository.serialize())
        return
    session = CipherSession.derive(password, params=params)
    try:
        atomic_write(path, seal(repository, session))
    finally:
        session.lock()


def export_plaintext(path, repository: NoteRepository) -> Path:
    """Write a plaintext copy of the notes to another path."""
    path = Path(path).expanduser()
    atomic_write(path, repository.serialize())
    logger.info("Exported %d notes to %s", len(repository), path)
    return path
