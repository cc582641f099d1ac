from __future__ import annotations


class QuantEngineError(Exception):
    """Base class for errors raised by quant_finance_engine."""


class FormatError(QuantEngineError, ValueError):
    """Malformed duration string."""


class InvalidModelError(QuantEngineError, ValueError):
    """Model parameters that leave a calculation undefined."""


class EmptyInputError(QuantEngineError, ValueError):
    """No usable samples or rows remain after cleaning."""


class LevelNotFoundError(QuantEngineError, KeyError):
    """Statistics requested for a level the tree does not have."""


class NumericalDivergenceError(QuantEngineError, ArithmeticError):
    """Iteration produced a non-finite step."""


class ConvergenceWarning(UserWarning):
    """Solver ran out of iterations above tolerance; the estimate is still returned."""
