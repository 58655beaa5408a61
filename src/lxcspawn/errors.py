"""Classified errors raised by the deployment pipeline."""


class LxcSpawnError(Exception):
    """Base class for every fatal pipeline error."""
    kind = "deployment"


class PreconditionError(LxcSpawnError):
    """Required host or guest capability is missing."""
    kind = "precondition"


class InputCancelled(LxcSpawnError):
    """Operator cancelled a prompt or declined the confirmation."""
    kind = "cancelled"


class InputError(LxcSpawnError):
    """Collected parameters are inconsistent."""
    kind = "input"


class ResolutionError(LxcSpawnError):
    """No qualifying storage pool or template was found."""
    kind = "resolution"


class FetchError(LxcSpawnError):
    """Remote installer could not be fetched within the retry budget."""
    kind = "fetch"


class IntegrityError(LxcSpawnError):
    """Fetched installer is empty or below the minimum size."""
    kind = "integrity"


class ExecutionError(LxcSpawnError):
    """A host or guest command failed."""
    kind = "execution"


class ReadinessTimeout(ExecutionError):
    """Container did not accept commands before the readiness deadline."""
    kind = "timeout"
