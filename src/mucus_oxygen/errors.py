class ModelError(Exception):
    """Base class for errors raised by the oxygen penetration model."""


class ConfigurationError(ModelError, ValueError):
    """Missing or invalid physical constants. No run can be trusted."""


class DomainError(ModelError, ValueError):
    """Invalid geometry, direction or grid for a single invocation."""


class ConvergenceError(ModelError, RuntimeError):
    """
    A root-finder did not converge within its iteration budget.

    Carries the iteration count and the last residual norm so sweep-level
    callers can report the failure next to the offending parameters.
    """
    def __init__(self, message, iterations=None, residual=None):
        super().__init__(message)
        self.iterations = iterations
        self.residual = residual
