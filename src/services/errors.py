"""Error taxonomy for the valuation engine."""


class ValuationError(Exception):
    """Base class for valuation engine errors."""


class InputError(ValuationError, ValueError):
    """Malformed or missing snapshot inputs (e.g. negative shares outstanding)."""


class ModelPreconditionError(ValuationError, ValueError):
    """The DCF model is mathematically undefined for the given inputs."""


class UpstreamFailure(ValuationError, RuntimeError):
    """Suggestion or remote calculation service failed, timed out, or returned bad data."""
