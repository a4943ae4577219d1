"""
Check-node combining rules.

Every rule maps the messages arriving on the *other* edges of a check node
to the message leaving on the remaining edge. Rules are pure functions; the
extrinsic exclusion is done once, in `extrinsic`, so no rule ever sees the
message of the edge it answers on.

An empty input means a check of degree one, which forces its bit to 0:
Gallager rules return 0, soft rules return +inf (callers clip).
"""

from functools import reduce

import numpy as np


def phi(x):
    """phi(x) = -ln(tanh(x/2)), self-inverse on (0, inf), phi(0) = inf, phi(inf) = 0."""
    with np.errstate(divide="ignore"):
        return -np.log(np.tanh(np.asarray(x, dtype=np.float64) / 2))


def box_plus(a, b):
    """a [+] b = ln((1 + e^(a+b)) / (e^a + e^b)), evaluated without overflow."""
    return np.logaddexp(0.0, a + b) - np.logaddexp(a, b)


def _signs(msgs: np.ndarray) -> np.ndarray:
    # exact zeros count as positive
    return np.where(msgs < 0, -1.0, 1.0)


# -----------------------------
# Hard-decision rules
# -----------------------------


def gallager_check(others: np.ndarray) -> int:
    """XOR of the other incoming bits."""
    return int(np.bitwise_xor.reduce(np.asarray(others, dtype=np.int8)))


# -----------------------------
# Soft rules
# -----------------------------


def sum_product_check(others: np.ndarray) -> float:
    """Sign product times phi of the summed phi-magnitudes."""
    others = np.asarray(others, dtype=np.float64)
    s = np.prod(_signs(others))
    return float(s * phi(np.sum(phi(np.abs(others)))))


def box_plus_check(others: np.ndarray) -> float:
    """Sum-product via repeated two-input box-plus."""
    others = np.asarray(others, dtype=np.float64)
    if len(others) == 0:
        return np.inf
    return float(reduce(box_plus, others))


def min_sum_check(others: np.ndarray, attenuation: float = 1.0) -> float:
    """Sign product times attenuated minimum magnitude."""
    others = np.asarray(others, dtype=np.float64)
    if len(others) == 0:
        return np.inf
    return float(np.prod(_signs(others)) * attenuation * np.min(np.abs(others)))


def extrinsic(rule, msgs: np.ndarray, **params) -> np.ndarray:
    """
    Apply a check rule once per edge of a check node.

    Args:
        rule: One of the check rules above.
        msgs (np.ndarray): Incoming messages on all edges of the check, in edge order.
        **params: Extra rule parameters (e.g. attenuation).

    Returns:
        np.ndarray: out[k] = rule(msgs without entry k).
    """
    return np.array([rule(np.delete(msgs, k), **params) for k in range(len(msgs))])
