"""Exceptions raised by the notes core."""


class CryptNotesError(Exception):
    """Base class for every error the notes core raises."""


class NotFound(CryptNotesError):
    """No note with the requested id."""

    def __init__(self, note_id):
        super().__init__(f"note {note_id!r} not found")
        self.note_id = note_id


class FormatError(CryptNotesError):
    """Serialized notes or file framing are malformed."""


class AuthenticationError(CryptNotesError):
    """Wrong password, or an encrypted file that was corrupted or tampered with."""


class PasswordRequired(CryptNotesError):
    """The notes file is encrypted and no password was supplied."""


class PasswordPolicyError(CryptNotesError):
    """A new password does not meet the length requirements."""


class StorageIOError(CryptNotesError):
    """Reading or writing the notes file failed at the filesystem level."""


class ConfigError(CryptNotesError):
    """The configuration file could not be parsed or holds invalid values."""
