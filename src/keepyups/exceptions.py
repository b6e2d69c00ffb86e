"""Error types shared across keepyups.

None of these escape the engine's public operations: setters turn
ValidationRejected into a False return, stores turn the persistence
errors into False / None results.
"""


class KeepyUpsError(Exception):
    """Base error for keepyups."""

    pass


class ValidationRejected(KeepyUpsError):
    """A setter argument is outside its allowed range."""

    pass


class PersistenceUnavailable(KeepyUpsError):
    """The state store could not be read or written."""

    pass


class MalformedSnapshot(KeepyUpsError):
    """A stored snapshot could not be parsed into a challenge state."""

    pass
