"""Error hierarchy for the evaluation service.

Provisioning and run errors propagate synchronously to the caller of the
core.  Nothing in here is retried; a caller that wants another attempt
issues a fresh request, which provisions a brand-new environment.
"""


class CodeEvalError(Exception):
    """Base error for all codeeval exceptions."""


class ProvisionError(CodeEvalError):
    """An isolation unit could not be made ready for a request."""


class UnknownEnvironment(ProvisionError):
    """The requested environment name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"invalid environment: {name}")
        self.name = name


class ProviderUnavailable(ProvisionError):
    """The isolation provider could not create or start a unit."""


class ResourceExhausted(ProvisionError):
    """The isolation provider refused a unit for lack of resources."""


class ProvisionTimeout(ProvisionError):
    """The request deadline elapsed before the unit was started."""


class RunError(CodeEvalError):
    """Running a program inside a provisioned unit failed."""


class WriteFailed(RunError):
    """The program body could not be written to the unit's input."""


class DrainFailed(RunError):
    """Reading the unit's output stream failed for a reason other than timeout."""


class EnvironmentStateError(CodeEvalError):
    """An operation was attempted in a state that does not allow it."""
