"""
Iterative message-passing decoders for binary LDPC codes.

Gallager A/B (hard decisions) and sum-product / min-sum (log-likelihood
ratios) share one engine: check update, hard decision, syndrome test,
variable update, repeated until the syndrome vanishes or the iteration
budget runs out.

Design:
    - messages are edge-indexed numpy arrays over the TannerGraph edge arena
    - flooding schedule: every check reads the previous variable messages,
      every variable reads the check messages of the same iteration
    - optional layered schedule for the soft decoders, one conflict-free
      group of checks at a time
    - one decoder class per DecoderKind; the class owns the check rule and
      the variable/decision rules, the base class owns the loop
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np
import scipy.sparse as sp

from mp_channels import BAWGNC, BSC, ChannelModel, as_bits
from mp_errors import ConfigurationError, DomainError
from mp_graph import TannerGraph, build_graph
from mp_rules import box_plus_check, extrinsic, gallager_check, min_sum_check, sum_product_check
from mp_schedule import validate_schedule

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 100
DEFAULT_LLR_MAX = 20.0


# -----------------------------
# Decoder kinds
# -----------------------------


class DecoderKind:
    """Closed set of decoder variants, each carrying its own parameters."""


@dataclass(frozen=True)
class GallagerA(DecoderKind):
    pass


@dataclass(frozen=True)
class GallagerB(DecoderKind):
    threshold: int = 2

    def __post_init__(self):
        if not isinstance(self.threshold, (int, np.integer)) or self.threshold < 1:
            raise DomainError(f"Gallager B threshold must be a positive integer, got {self.threshold}")


@dataclass(frozen=True)
class SumProduct(DecoderKind):
    pass


@dataclass(frozen=True)
class SumProductBoxPlus(DecoderKind):
    pass


@dataclass(frozen=True)
class MinSum(DecoderKind):
    attenuation: float = 0.5

    def __post_init__(self):
        if not 0 < self.attenuation <= 1:
            raise DomainError(f"min-sum attenuation must be in (0, 1], got {self.attenuation}")


# -----------------------------
# Results
# -----------------------------


@dataclass(frozen=True)
class MessageHistory:
    """
    Edge-indexed messages of every iteration run.

    var_to_check[t] holds the messages the checks read in iteration t + 1,
    check_to_var[t] the messages they sent back.
    """

    graph: TannerGraph
    var_to_check: tuple
    check_to_var: tuple

    def __len__(self):
        return len(self.check_to_var)

    def var_to_check_matrix(self, iteration: int) -> np.ndarray:
        """Dense (num_vars x num_checks) view of iteration `iteration` (1-based)."""
        g = self.graph
        vals = self.var_to_check[iteration - 1]
        return sp.coo_matrix(
            (vals, (g.edge_var, g.edge_check)), shape=(g.num_vars, g.num_checks)
        ).toarray()

    def check_to_var_matrix(self, iteration: int) -> np.ndarray:
        """Dense (num_checks x num_vars) view of iteration `iteration` (1-based)."""
        g = self.graph
        vals = self.check_to_var[iteration - 1]
        return sp.coo_matrix(
            (vals, (g.edge_check, g.edge_var)), shape=(g.num_checks, g.num_vars)
        ).toarray()


@dataclass(frozen=True)
class DecodingResult:
    success: bool
    decision: np.ndarray
    iterations_used: int
    soft: Optional[np.ndarray] = None
    message_history: Optional[MessageHistory] = None


def _check_max_iterations(max_iterations):
    if not isinstance(max_iterations, (int, np.integer)) or max_iterations < 1:
        raise DomainError(f"max_iterations must be a positive integer, got {max_iterations}")


# -----------------------------
# Engine
# -----------------------------


class AbstractMPDecoder(ABC):
    """Abstract base class for flooding message-passing decoders."""

    check_rule = None
    message_dtype = np.float64

    def __init__(self, graph: TannerGraph):
        if not isinstance(graph, TannerGraph):
            graph = build_graph(graph)
        self.graph = graph

    @property
    def rule_params(self) -> dict:
        return {}

    @abstractmethod
    def observe(self, received) -> np.ndarray:
        """Validate the received word and return the per-variable channel values."""

    @abstractmethod
    def initial_messages(self, obs: np.ndarray) -> np.ndarray:
        """Variable-to-check messages read by the first check update."""

    @abstractmethod
    def hard_decision(self, obs: np.ndarray, c2v: np.ndarray):
        """
        Returns:
            tuple: (decision: np.ndarray, soft: np.ndarray or None)
        """

    @abstractmethod
    def variable_update(self, obs: np.ndarray, c2v: np.ndarray) -> np.ndarray:
        """Variable-to-check messages of the next iteration."""

    def condition(self, msgs: np.ndarray) -> np.ndarray:
        return msgs

    def check_node(self, msgs: np.ndarray) -> np.ndarray:
        """Outgoing messages of one check node, in its edge order."""
        return extrinsic(self.check_rule, msgs, **self.rule_params)

    def check_update(self, v2c: np.ndarray) -> np.ndarray:
        """Check-to-variable messages on every edge, reading only v2c."""
        c2v = np.empty(self.graph.num_edges, dtype=self.message_dtype)
        for edges in self.graph.check_edges:
            if len(edges):
                c2v[edges] = self.check_node(v2c[edges])
        return self.condition(c2v)

    def run(self, received, max_iterations: int = DEFAULT_MAX_ITERATIONS, keep_history: bool = False,
            schedule=None) -> DecodingResult:
        """
        Run the decoder on one received word.

        Args:
            received: Channel output of length num_vars.
            max_iterations (int): Iteration budget.
            keep_history (bool): Record the messages of every iteration.
            schedule: Optional list of conflict-free check groups (layered decoding).

        Returns:
            DecodingResult: success flag, decision, iterations used, soft output
            and, if requested, the message history.
        """
        _check_max_iterations(max_iterations)
        if schedule is not None:
            raise ConfigurationError(
                f"{self.__class__.__name__} only supports the flooding schedule"
            )
        obs = self.observe(received)
        v2c = self.initial_messages(obs)
        v2c_hist, c2v_hist = [], []

        for it in range(1, max_iterations + 1):
            c2v = self.check_update(v2c)
            if keep_history:
                v2c_hist.append(v2c.copy())
                c2v_hist.append(c2v.copy())

            decision, soft = self.hard_decision(obs, c2v)
            if self.graph.is_codeword(decision):
                logger.debug("%s converged after %d iterations", self.__class__.__name__, it)
                return self._result(True, decision, it, soft, v2c_hist, c2v_hist, keep_history)

            if it < max_iterations:
                v2c = self.variable_update(obs, c2v)

        logger.debug("%s exhausted %d iterations", self.__class__.__name__, max_iterations)
        return self._result(False, decision, max_iterations, soft, v2c_hist, c2v_hist, keep_history)

    def _result(self, success, decision, it, soft, v2c_hist, c2v_hist, keep_history):
        history = None
        if keep_history:
            history = MessageHistory(self.graph, tuple(v2c_hist), tuple(c2v_hist))
        return DecodingResult(success, decision.astype(int), it, soft, history)


# -----------------------------
# Gallager A / B
# -----------------------------


class GallagerADecoder(AbstractMPDecoder):
    """
    Gallager A: check nodes send the XOR of the other bits, a variable node
    flips its channel bit on an edge only if every other check disagrees.
    """

    check_rule = staticmethod(gallager_check)
    message_dtype = np.int8

    def __init__(self, graph: TannerGraph, channel: ChannelModel = None):
        super().__init__(graph)
        if channel is not None and not isinstance(channel, BSC):
            raise ConfigurationError(
                f"{self.__class__.__name__} works on hard decisions, not on {channel!r}"
            )
        self.channel = channel
        self._var_degrees = self.graph.var_degrees

    def observe(self, received):
        return as_bits(received, self.graph.num_vars)

    def initial_messages(self, obs):
        # the channel bit, kept as the node's memory of the observation
        return obs[self.graph.edge_var].copy()

    def hard_decision(self, obs, c2v):
        """Majority vote over incoming check bits, channel bit breaks ties."""
        n = self.graph.num_vars
        ones = np.bincount(self.graph.edge_var, weights=c2v, minlength=n)
        deg = self._var_degrees
        tie_break = (obs == 1) & (deg % 2 == 0)
        return (ones + tie_break > deg // 2).astype(np.int8), None

    def dissent(self, obs, c2v):
        """Per edge: number of *other* checks disagreeing with the channel bit, and how many others there are."""
        edge_var = self.graph.edge_var
        disagree = (c2v != obs[edge_var]).astype(np.int64)
        total = np.bincount(edge_var, weights=disagree, minlength=self.graph.num_vars).astype(np.int64)
        return total[edge_var] - disagree, self._var_degrees[edge_var] - 1

    def flips(self, others_disagree, num_others):
        return (num_others > 0) & (others_disagree == num_others)

    def variable_update(self, obs, c2v):
        flip = self.flips(*self.dissent(obs, c2v))
        return obs[self.graph.edge_var] ^ flip.astype(np.int8)


class GallagerBDecoder(GallagerADecoder):
    """Gallager B: flip on an edge once `threshold` other checks disagree."""

    def __init__(self, graph: TannerGraph, threshold: int = 2, channel: ChannelModel = None):
        super().__init__(graph, channel)
        if not 1 <= threshold <= self.graph.num_checks:
            raise DomainError(
                f"Gallager B threshold must be in [1, {self.graph.num_checks}], got {threshold}"
            )
        self.threshold = threshold

    def flips(self, others_disagree, num_others):
        return (num_others + 1 >= self.threshold) & (others_disagree >= self.threshold)


# -----------------------------
# Soft decoders
# -----------------------------


class SoftDecoder(AbstractMPDecoder):
    """LLR-domain decoders: channel LLR plus the sum of incoming check messages."""

    scaled_channel = True

    def __init__(self, graph: TannerGraph, channel: ChannelModel, llr_max: Optional[float] = DEFAULT_LLR_MAX):
        super().__init__(graph)
        if not isinstance(channel, (BSC, BAWGNC)):
            raise ConfigurationError(
                f"{self.__class__.__name__} needs a BSC or BAWGNC channel model, got {channel!r}"
            )
        if llr_max is not None and not llr_max > 0:
            raise DomainError(f"llr_max must be positive or None, got {llr_max}")
        self.channel = channel
        self.llr_max = llr_max

    def condition(self, msgs):
        if self.llr_max is None:
            return msgs
        return np.clip(msgs, -self.llr_max, self.llr_max)

    def observe(self, received):
        w = self.channel.validate_received(received, self.graph.num_vars)
        return self.condition(self.channel.initial_values(w, scaled=self.scaled_channel))

    def initial_messages(self, obs):
        return obs[self.graph.edge_var].astype(np.float64)

    def totals(self, obs, c2v):
        return obs + np.bincount(self.graph.edge_var, weights=c2v, minlength=self.graph.num_vars)

    def hard_decision(self, obs, c2v):
        soft = self.totals(obs, c2v)
        return (soft < 0).astype(np.int8), soft

    def variable_update(self, obs, c2v):
        return self.condition(self.totals(obs, c2v)[self.graph.edge_var] - c2v)

    def run(self, received, max_iterations=DEFAULT_MAX_ITERATIONS, keep_history=False, schedule=None):
        if schedule is None:
            return super().run(received, max_iterations, keep_history)
        return self.run_layered(received, schedule, max_iterations, keep_history)

    def run_layered(self, received, schedule, max_iterations=DEFAULT_MAX_ITERATIONS, keep_history=False):
        """
        Layered decoding: groups of checks are updated in turn, each group
        reading the posteriors left by the previous ones. Checks inside a
        group share no variable, so their updates commute.
        """
        _check_max_iterations(max_iterations)
        validate_schedule(self.graph, schedule)
        obs = self.observe(received)
        g = self.graph
        group_edges = [np.concatenate([g.check_edges[c] for c in group]) for group in schedule]

        soft = obs.astype(np.float64).copy()
        c2v = np.zeros(g.num_edges)
        v2c_hist, c2v_hist = [], []

        for it in range(1, max_iterations + 1):
            v2c = np.empty(g.num_edges)
            for group, edges in zip(schedule, group_edges):
                # no variable appears twice in a group, so plain fancy indexing is safe
                vars_ = g.edge_var[edges]
                v2c[edges] = self.condition(soft[vars_] - c2v[edges])
                new = np.concatenate(
                    [np.asarray(self.check_node(v2c[g.check_edges[c]]), dtype=np.float64) for c in group]
                )
                new = self.condition(new)
                soft[vars_] += new - c2v[edges]
                c2v[edges] = new
            if keep_history:
                v2c_hist.append(v2c.copy())
                c2v_hist.append(c2v.copy())

            decision = (soft < 0).astype(np.int8)
            if g.is_codeword(decision):
                logger.debug("layered %s converged after %d iterations", self.__class__.__name__, it)
                return self._result(True, decision, it, soft.copy(), v2c_hist, c2v_hist, keep_history)

        logger.debug("layered %s exhausted %d iterations", self.__class__.__name__, max_iterations)
        return self._result(False, decision, max_iterations, soft.copy(), v2c_hist, c2v_hist, keep_history)


class SumProductDecoder(SoftDecoder):
    check_rule = staticmethod(sum_product_check)


class SumProductBoxPlusDecoder(SoftDecoder):
    check_rule = staticmethod(box_plus_check)


class MinSumDecoder(SoftDecoder):
    """Attenuated min-sum; BAWGNC observations are used unscaled."""

    check_rule = staticmethod(min_sum_check)
    scaled_channel = False

    def __init__(self, graph: TannerGraph, channel: ChannelModel, attenuation: float = 0.5,
                 llr_max: Optional[float] = DEFAULT_LLR_MAX):
        super().__init__(graph, channel, llr_max)
        if not 0 < attenuation <= 1:
            raise DomainError(f"min-sum attenuation must be in (0, 1], got {attenuation}")
        self.attenuation = attenuation

    @property
    def rule_params(self):
        return {"attenuation": self.attenuation}


# -----------------------------
# Entry points
# -----------------------------


def make_decoder(graph, kind: DecoderKind, channel: ChannelModel = None,
                 llr_max: Optional[float] = DEFAULT_LLR_MAX) -> AbstractMPDecoder:
    """Build the decoder object for a DecoderKind, validating the combination once."""
    if not isinstance(graph, TannerGraph):
        graph = build_graph(graph)
    match kind:
        case GallagerA():
            return GallagerADecoder(graph, channel)
        case GallagerB(threshold=threshold):
            return GallagerBDecoder(graph, threshold, channel)
        case SumProduct():
            return SumProductDecoder(graph, channel, llr_max)
        case SumProductBoxPlus():
            return SumProductBoxPlusDecoder(graph, channel, llr_max)
        case MinSum(attenuation=attenuation):
            return MinSumDecoder(graph, channel, attenuation, llr_max)
        case _:
            raise ConfigurationError(f"unknown decoder kind {kind!r}")


def decode(graph, received, channel_model: ChannelModel = None, decoder_kind: DecoderKind = None,
           max_iterations: int = DEFAULT_MAX_ITERATIONS, keep_history: bool = False,
           schedule=None, llr_max: Optional[float] = DEFAULT_LLR_MAX) -> DecodingResult:
    """
    Decode one received word.

    Args:
        graph: TannerGraph (or a parity-check matrix to build one from).
        received: Bits for BSC / Gallager decoders, reals for BAWGNC.
        channel_model: BSC or BAWGNC; optional for Gallager decoders.
        decoder_kind: DecoderKind variant, sum-product by default.
        max_iterations (int): Iteration budget.
        keep_history (bool): Return the messages of every iteration.
        schedule: Check groups for layered decoding (soft decoders only).
        llr_max: Clipping bound of soft messages, None to disable.

    Returns:
        DecodingResult
    """
    if decoder_kind is None:
        decoder_kind = SumProduct()
    decoder = make_decoder(graph, decoder_kind, channel_model, llr_max)
    return decoder.run(received, max_iterations, keep_history=keep_history, schedule=schedule)


if __name__ == "__main__":
    from code_constructions import make_repetition

    H = make_repetition(333)
    channel = BSC(0.1)
    graph = build_graph(H)
    received = channel.transmit(np.zeros(graph.num_vars, dtype=int), rng=1)

    start = time.time()
    result = decode(graph, received, channel, MinSum(0.75), max_iterations=33)
    end = time.time()

    print(result.success, result.iterations_used)
    print(f"Time taken: {end - start:.4f} s")
