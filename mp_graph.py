"""
Tanner graph of a binary parity-check matrix.

Design:
    - built once from H, read-only afterwards and shared by every decode call
    - edges live in one arena, numbered in CSR order (check-major, then column)
    - each node keeps the numpy array of its edge ids, so decoders index
      edge-valued message arrays directly instead of dicts of dicts
    - H is kept as a SciPy CSR matrix for syndrome computation
"""

import logging

import galois
import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import scipy.sparse as sp

from mp_errors import DimensionError, UnsupportedFieldError

logger = logging.getLogger(__name__)


def _frozen(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


def _check_shape(shape):
    if len(shape) != 2:
        raise DimensionError(f"parity-check matrix must be 2-D, got shape {shape}")
    if shape[0] == 0 or shape[1] == 0:
        raise DimensionError(f"parity-check matrix of improper dimension {shape}")


def _check_binary(values: np.ndarray):
    """Reject any entry that is not 0 or 1."""
    if values.dtype.kind not in "biuf":
        raise UnsupportedFieldError(
            f"parity-check entries of dtype {values.dtype} are not over GF(2)"
        )
    if values.size and not np.all((values == 0) | (values == 1)):
        raise UnsupportedFieldError(
            "parity-check matrix has entries outside {0, 1}; only binary codes are supported"
        )


def to_binary_csr(H) -> sp.csr_matrix:
    """
    Validate a parity-check matrix and return it as a 0/1 CSR matrix.

    Args:
        H: numpy array, nested sequence, SciPy sparse matrix or galois.FieldArray.

    Returns:
        sp.csr_matrix: uint8 matrix with sorted indices and no explicit zeros.
    """
    if isinstance(H, galois.FieldArray):
        order = type(H).order
        if order != 2:
            raise UnsupportedFieldError(f"matrix is over GF({order}), only GF(2) is supported")
        H = H.view(np.ndarray)

    if sp.issparse(H):
        _check_shape(H.shape)
        H = sp.csr_matrix(H, copy=True)
        H.sum_duplicates()
        H.eliminate_zeros()
        _check_binary(H.data)
    else:
        try:
            H = np.asarray(H)
        except ValueError as e:
            raise DimensionError(f"parity-check matrix is ragged: {e}") from e
        _check_shape(H.shape)
        _check_binary(H)

    H = sp.csr_matrix(H != 0, dtype=np.uint8)
    H.sort_indices()
    return H


class TannerGraph:
    """Bipartite check/variable graph of a binary parity-check matrix."""

    def __init__(self, H):
        """
        Args:
            H: Parity-check matrix over GF(2) (dense, sparse or galois).
        """
        self.H = to_binary_csr(H)
        self.num_checks, self.num_vars = self.H.shape

        # edge arena, in CSR order
        indptr = self.H.indptr
        self.edge_var = _frozen(self.H.indices.astype(np.int64))
        self.edge_check = _frozen(
            np.repeat(np.arange(self.num_checks, dtype=np.int64), np.diff(indptr))
        )
        self.num_edges = len(self.edge_var)

        # lists of neighbouring edges, per node
        self.check_edges = tuple(
            _frozen(np.arange(indptr[c], indptr[c + 1], dtype=np.int64))
            for c in range(self.num_checks)
        )
        by_var = np.argsort(self.edge_var, kind="stable")
        var_ptr = np.concatenate(([0], np.cumsum(np.bincount(self.edge_var, minlength=self.num_vars))))
        self.var_edges = tuple(
            _frozen(by_var[var_ptr[v]:var_ptr[v + 1]]) for v in range(self.num_vars)
        )

        self.check_adj = tuple(tuple(int(v) for v in self.edge_var[e]) for e in self.check_edges)
        self.var_adj = tuple(tuple(int(c) for c in self.edge_check[e]) for e in self.var_edges)

        logger.debug(
            "built Tanner graph: %d checks, %d variables, %d edges",
            self.num_checks, self.num_vars, self.num_edges,
        )

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(num_checks={self.num_checks}, "
            f"num_vars={self.num_vars}, num_edges={self.num_edges})"
        )

    @property
    def check_degrees(self) -> np.ndarray:
        return np.diff(self.H.indptr)

    @property
    def var_degrees(self) -> np.ndarray:
        return np.array([len(e) for e in self.var_edges], dtype=np.int64)

    def syndrome(self, x) -> np.ndarray:
        """Return H @ x mod 2 for a length-n bit vector x."""
        x = np.asarray(x)
        if x.shape != (self.num_vars,):
            raise DimensionError(f"vector has length {x.shape}, expected ({self.num_vars},)")
        return (self.H.dot(x.astype(np.int64)) % 2).astype(np.int8)

    def is_codeword(self, x) -> bool:
        return not np.any(self.syndrome(x))

    def to_networkx(self) -> nx.Graph:
        """Export as a bipartite networkx graph, data nodes d{j} and parity nodes p{i}."""
        B = nx.Graph()
        B.add_nodes_from((f"d{j}" for j in range(self.num_vars)), bipartite=0)
        B.add_nodes_from((f"p{i}" for i in range(self.num_checks)), bipartite=1)
        B.add_edges_from(
            (f"d{v}", f"p{c}") for c, v in zip(self.edge_check, self.edge_var)
        )
        return B

    def draw(self, ax=None, show=True):
        """Visualize the Tanner graph of the code."""
        B = self.to_networkx()
        data_labels = [f"d{j}" for j in range(self.num_vars)]
        parity_labels = [f"p{i}" for i in range(self.num_checks)]

        pos = nx.bipartite_layout(B, data_labels)
        nx.draw_networkx_nodes(
            B, pos, nodelist=data_labels, node_color="lightblue", node_shape="o", ax=ax
        )
        nx.draw_networkx_nodes(
            B, pos, nodelist=parity_labels, node_color="lightgreen", node_shape="s", ax=ax
        )
        nx.draw_networkx_labels(B, pos, ax=ax)
        nx.draw_networkx_edges(B, pos, ax=ax)
        if show:
            plt.show()
        return pos


def build_graph(H) -> TannerGraph:
    """Build the Tanner graph of a binary parity-check matrix."""
    return TannerGraph(H)
