"""Custom exceptions for the vault management core."""


class ManageVaultError(Exception):
    """Base class for vault management failures."""


class UnreachableStageError(ManageVaultError):
    """Raised when a stage value outside the closed stage set reaches the engine."""

    def __init__(self, stage: object) -> None:
        super().__init__("Unreachable manage vault stage: {0!r}".format(stage))
        self.stage = stage


class UnknownChangeKindError(ManageVaultError):
    """Raised when a change or command payload carries an unknown kind."""


class StateOverrideError(ManageVaultError):
    """Raised when the test-only state override hook is misused."""


class SessionClosedError(ManageVaultError):
    """Raised when a user mutation is invoked on a torn down session."""


class EnvironmentReadError(ManageVaultError):
    """Raised when an environment collaborator fails to deliver a value."""
