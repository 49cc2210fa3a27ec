"""Error types raised by the genesis transaction workflow.

Every error carries an optional :class:`Stage` naming the workflow step that
failed.  Collaborators raise the leaf classes without a stage; the workflow
re-raises them with one attached so that callers can match on either the
category (``isinstance``) or the stage (``err.stage``) without parsing text.
"""

from __future__ import annotations

import enum
from typing import Optional


class Stage(enum.Enum):
    """Workflow steps, valued by the message prefix used when they fail."""

    PARSE_PUBKEY = "failed to get consensus node public key"
    PARSE_NODE_ID = "failed to parse node ID"
    INIT_NODE_FILES = "failed to initialize node validator files"
    READ_GENESIS = "failed to read genesis doc file"
    UNMARSHAL_GENESIS = "failed to unmarshal genesis state"
    VALIDATE_GENESIS = "failed to validate genesis state"
    INIT_KEYBASE = "failed to initialize keybase"
    READ_KEY = "failed to read from keybase"
    VALIDATE_ACCOUNT = "failed to validate account in genesis"
    BUILD_MSG = "failed to build create-validator message"
    PRINT_UNSIGNED = "failed to print unsigned std tx"
    READ_UNSIGNED = "failed to read unsigned gen tx file"
    SIGN = "failed to sign std tx"
    OUTPUT_PATH = "failed to create output file path"
    WRITE = "failed to write signed gen tx"


class GentxError(Exception):
    """Base class for all workflow failures."""

    def __init__(self, message: str = "", *, stage: Optional[Stage] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def with_stage(self, stage: Stage) -> "GentxError":
        """Return a copy of this error tagged with ``stage``.

        The copy keeps the concrete class, so the category survives.
        """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.args = self.args
        clone.stage = stage
        return clone

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        if not self.message:
            return self.stage.value
        return f"{self.stage.value}: {self.message}"


# Categories -----------------------------------------------------------------


class InputError(GentxError):
    """Malformed flags or override values."""


class NotFoundError(GentxError):
    """A required input (file, key, account) does not exist."""


class GenesisValidationError(GentxError):
    """Genesis state or account balance does not satisfy the requirements."""


class SigningError(GentxError):
    """Key store, signing backend or wire round-trip failure."""


class OutputError(GentxError):
    """The output artifact could not be written."""


# Leaf errors ----------------------------------------------------------------


class InvalidPubKeyError(InputError):
    pass


class FlagConflictError(InputError):
    """A contributed command flag collides with a fixed one."""


class GenesisFileError(NotFoundError):
    pass


class MalformedGenesisError(GenesisValidationError):
    pass


class ModuleGenesisError(GenesisValidationError):
    def __init__(self, module: str, message: str) -> None:
        super().__init__(f"{module}: {message}")
        self.module = module


class AccountNotFoundError(NotFoundError):
    pass


class InsufficientFundsError(GenesisValidationError):
    pass


class KeyNotFoundError(NotFoundError):
    pass


class KeybaseUnavailableError(SigningError):
    pass


class DecodeError(SigningError):
    pass


class OutputExistsError(OutputError):
    pass


__all__ = [
    "Stage",
    "GentxError",
    "InputError",
    "NotFoundError",
    "GenesisValidationError",
    "SigningError",
    "OutputError",
    "InvalidPubKeyError",
    "FlagConflictError",
    "GenesisFileError",
    "MalformedGenesisError",
    "ModuleGenesisError",
    "AccountNotFoundError",
    "InsufficientFundsError",
    "KeyNotFoundError",
    "KeybaseUnavailableError",
    "DecodeError",
    "OutputExistsError",
]
