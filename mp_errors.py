"""
Errors raised by the message-passing decoders.

Every error is raised while building a graph, a channel or a decoder, or
while validating the inputs of a decode call. Once the iterations start,
non-convergence is reported in the result, never raised.
"""


class MessagePassingError(Exception):
    """Base class for all message-passing errors."""


class DimensionError(MessagePassingError, ValueError):
    """Matrix or vector has the wrong shape."""


class UnsupportedFieldError(MessagePassingError, TypeError):
    """Parity-check matrix is not over GF(2)."""


class DomainError(MessagePassingError, ValueError):
    """Channel or decoder parameter out of range."""


class ConfigurationError(MessagePassingError, ValueError):
    """Channel, decoder and schedule do not fit together."""
