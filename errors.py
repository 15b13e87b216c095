"""Error taxonomy surfaced by the folding driver, decider and codecs.

Nothing here is retried internally. `CommitmentMismatchError` and
`DeciderCompileError` poison the session they were raised in; `SequenceError`
leaves the session untouched so the caller can re-issue the right step.
"""

class GrapevineError(Exception):  # Base class for every error raised by this library.
    pass

class CircuitLoadError(GrapevineError):  # Malformed circuit artifact or wire counts the wrapper cannot use.
    pass

class FoldError(GrapevineError):  # Any failure of `FoldingDriver.step`.
    pass

class ArithmetizationError(FoldError):  # The (augmented) step relation could not be satisfied.
    pass

class WitnessGenerationError(ArithmetizationError):  # The witness oracle failed or returned a bad assignment.
    pass

class MissingPrivateInputError(ArithmetizationError):  # Step needs private inputs and none were provided.
    pass

class SequenceError(FoldError):  # Step index skipped or repeated.
    pass

class CommitmentMismatchError(FoldError):  # Vector/randomness does not reproduce a commitment.
    pass

class SessionPoisonedError(FoldError):  # Session hit an unrecoverable error and must be discarded.
    pass

class DeciderCompileError(GrapevineError):  # Final accumulator does not satisfy its relation.
    pass

class SerializationError(GrapevineError):  # Malformed external representation.
    pass

class VersionMismatchError(SerializationError):  # Format version, scheme or curve tag differs from ours.
    pass
