# errors.py
"""Exception taxonomy shared by the tables, models and the pipeline."""


class InvalidArgumentError(ValueError):
    """Malformed construction parameters or arguments (bad bin width, unknown tag, ...)."""


class InvalidStateError(RuntimeError):
    """Operation not allowed in the object's current state (predict before train, ...)."""


class NotSupportedError(NotImplementedError):
    """An extension point was left unconfigured (e.g. no model factory)."""


class CorruptFormatError(InvalidArgumentError):
    """A persisted model does not follow the expected write sequence."""


class PipelineExecutionError(RuntimeError):
    """One or more pipeline actions failed; the first failure is chained as ``__cause__``."""


def check_argument(condition: bool, message: str = "invalid argument") -> None:
    if not condition:
        raise InvalidArgumentError(message)


def check_state(condition: bool, message: str = "invalid state") -> None:
    if not condition:
        raise InvalidStateError(message)
