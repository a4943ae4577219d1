"""
Code construction utilities for tests and decoder demos.
"""

import galois
import numpy as np

# -----------------------------
# Small named codes
# -----------------------------

# [7,4,3] Hamming code, the usual Gallager A/B toy example
HAMMING_7_4 = np.array(
    [
        [1, 1, 0, 1, 1, 0, 0],
        [1, 0, 1, 1, 0, 1, 0],
        [0, 1, 1, 1, 0, 0, 1],
    ],
    dtype=int,
)

# [20,10,5] code used for BSC error-rate curves
CODE_20_10 = np.array(
    [
        [1, 0, 1, 0, 0, 1, 0, 0, 0, 1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 1, 0, 1, 0, 1, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0],
        [0, 0, 1, 0, 1, 0, 1, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0],
        [1, 0, 0, 1, 0, 0, 0, 1, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0],
        [0, 1, 0, 0, 1, 0, 0, 0, 1, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0],
        [1, 1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0],
        [0, 1, 1, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0],
        [0, 0, 1, 1, 0, 1, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0],
        [0, 0, 0, 1, 1, 0, 1, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0],
        [1, 0, 0, 0, 1, 1, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1],
    ],
    dtype=int,
)


def hamming_7_4():
    return HAMMING_7_4.copy()


def code_20_10():
    return CODE_20_10.copy()


# -----------------------------
# Repetition code
# -----------------------------
def make_repetition(n):
    """Return H matrix for n-bit repetition code (1 logical bit)."""
    H = np.zeros((n - 1, n), dtype=int)
    for i in range(n - 1):
        H[i, i] = 1
        H[i, i + 1] = 1
    return H


# -----------------------------
# Random regular LDPC
# -----------------------------
def make_random_regular_ldpc(m, n, row_weight, col_weight, rng=None, max_passes=100):
    """
    Generate a random (m x n) LDPC parity check matrix with fixed row and column weights.

    Duplicate (row, col) pairs left by the random matching are removed by
    swapping column endpoints with another edge.
    """
    assert m * row_weight == n * col_weight, "Inconsistent dimensions"
    rng = np.random.default_rng(rng)

    row_ones = np.repeat(np.arange(m), row_weight)
    col_ones = rng.permutation(np.repeat(np.arange(n), col_weight))
    edges = [(int(r), int(c)) for r, c in zip(row_ones, col_ones)]

    for _ in range(max_passes):
        used = set()
        duplicates = False
        for i, (r1, c1) in enumerate(edges):
            if (r1, c1) not in used:
                used.add((r1, c1))
                continue
            duplicates = True
            candidates = [
                j
                for j in range(len(edges))
                if j != i
                and (r1, edges[j][1]) not in used
                and (edges[j][0], c1) not in used
                and r1 != edges[j][0]
                and c1 != edges[j][1]
            ]
            if candidates:
                j = candidates[rng.integers(len(candidates))]
                r2, c2 = edges[j]
                edges[i], edges[j] = (r1, c2), (r2, c1)
            used.add(edges[i])
        if not duplicates:
            break

    H = np.zeros((m, n), dtype=int)
    for r, c in edges:
        H[r, c] = 1
    return H


# -----------------------------
# Codewords
# -----------------------------
def random_codeword(H, rng=None):
    """Uniformly random codeword of the code with parity-check matrix H."""
    rng = np.random.default_rng(rng)
    basis = galois.GF2(np.asarray(H) % 2).null_space()
    if basis.shape[0] == 0:
        return np.zeros(H.shape[1], dtype=int)
    coeffs = galois.GF2(rng.integers(0, 2, basis.shape[0]))
    return np.asarray(coeffs @ basis, dtype=int)


if __name__ == "__main__":
    rep = make_repetition(3)
    print(rep)
    print(random_codeword(hamming_7_4(), rng=0))
