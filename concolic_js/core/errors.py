# core/errors.py


class ConcolicError(Exception):
    """Base class for every failure the engine reports through `errors`."""

    phase = "Inspection"


class SignatureError(ConcolicError):
    phase = "Signature parsing"

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class OracleError(ConcolicError):
    phase = "Oracle communication"


class EvaluationError(ConcolicError):
    phase = "Symbolic evaluation"


class TraceMismatchError(EvaluationError):
    phase = "Trace replay"


class PathDivergenceError(ConcolicError):
    phase = "Branch stack update"


class TranslationError(ConcolicError):
    phase = "SMT translation"


class SolverError(ConcolicError):
    phase = "SMT solving"


class LoopSummaryError(ConcolicError):
    phase = "Loop summarization"


class SimplificationError(ConcolicError):
    phase = "Algebraic simplification"


class ConfigError(ConcolicError):
    phase = "Configuration"

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))
