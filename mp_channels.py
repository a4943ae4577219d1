"""
Channel models turning a received word into initial log-likelihood ratios.

Sign convention: positive LLR means bit 0 is more likely.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from mp_errors import DimensionError, DomainError


def as_bits(received, n: int = None) -> np.ndarray:
    """Return received as an int8 0/1 vector, rejecting anything else."""
    w = np.asarray(received)
    if w.ndim != 1:
        raise DimensionError(f"received word must be a vector, got shape {w.shape}")
    if n is not None and len(w) != n:
        raise DimensionError(f"received word has length {len(w)}, expected {n}")
    if w.dtype.kind not in "biuf" or not np.all((w == 0) | (w == 1)):
        raise DomainError("received word must contain only 0/1 entries")
    return w.astype(np.int8)


class ChannelModel(ABC):
    """Abstract base class for binary-input channels."""

    @abstractmethod
    def validate_received(self, received, n: int = None) -> np.ndarray:
        """Check a received word against the channel output alphabet."""

    @abstractmethod
    def initial_values(self, received: np.ndarray, scaled: bool = True) -> np.ndarray:
        """
        Channel LLRs seeding every variable-to-check message.

        Args:
            received (np.ndarray): Validated channel output.
            scaled (bool): Sum-product style scaling. Min-sum passes False;
                only channels whose scaling is a common factor honour it.
        """

    def initial_value(self, symbol, scaled: bool = True) -> float:
        return float(self.initial_values(np.atleast_1d(symbol), scaled=scaled)[0])

    @abstractmethod
    def transmit(self, codeword, rng: np.random.Generator = None) -> np.ndarray:
        """Send a codeword through the channel."""


@dataclass(frozen=True)
class BSC(ChannelModel):
    """Binary symmetric channel with crossover probability p."""

    crossover_probability: float

    def __post_init__(self):
        p = self.crossover_probability
        if not 0 < p < 1:
            raise DomainError(f"crossover probability must be in (0, 1), got {p}")

    @property
    def llr(self) -> float:
        p = self.crossover_probability
        return math.log((1 - p) / p)

    def validate_received(self, received, n: int = None) -> np.ndarray:
        return as_bits(received, n)

    def initial_values(self, received, scaled=True):
        return np.where(np.asarray(received) == 0, self.llr, -self.llr)

    def transmit(self, codeword, rng=None):
        rng = np.random.default_rng(rng)
        codeword = as_bits(codeword)
        flip_mask = rng.random(len(codeword)) < self.crossover_probability
        return codeword ^ flip_mask.astype(np.int8)


@dataclass(frozen=True)
class BAWGNC(ChannelModel):
    """Binary-input AWGN channel, BPSK 0 -> +1, 1 -> -1, noise std sigma."""

    sigma: float

    def __post_init__(self):
        if not self.sigma > 0:
            raise DomainError(f"noise standard deviation must be positive, got {self.sigma}")

    @property
    def snr_db(self) -> float:
        return -10 * math.log10(self.sigma ** 2)

    def validate_received(self, received, n: int = None) -> np.ndarray:
        y = np.asarray(received)
        if y.ndim != 1:
            raise DimensionError(f"received word must be a vector, got shape {y.shape}")
        if n is not None and len(y) != n:
            raise DimensionError(f"received word has length {len(y)}, expected {n}")
        if y.dtype.kind not in "biuf":
            raise DomainError(f"received word of dtype {y.dtype} is not real-valued")
        y = y.astype(np.float64)
        if not np.all(np.isfinite(y)):
            raise DomainError("received word contains non-finite values")
        return y

    def initial_values(self, received, scaled=True):
        y = np.asarray(received, dtype=np.float64)
        if not scaled:
            # min-sum only needs sign and relative magnitude
            return y.copy()
        return (2 / self.sigma ** 2) * y

    def transmit(self, codeword, rng=None):
        rng = np.random.default_rng(rng)
        codeword = as_bits(codeword)
        return 1.0 - 2.0 * codeword + self.sigma * rng.standard_normal(len(codeword))
