"""
Greedy grouping of check nodes into conflict-free update layers.

Two checks conflict when they share a variable node. Checks inside one
group can be updated together without reading each other's output, so a
list of groups is a drop-in replacement for "all checks at once".

Ref.: Mansour, Shanbhag, "Turbo Decoder Architectures for Low-Density
Parity-Check Codes" (2002).
"""

import logging

from mp_errors import ConfigurationError
from mp_graph import TannerGraph, build_graph

logger = logging.getLogger(__name__)


def find_schedule(graph) -> list:
    """
    Partition the checks into groups with no shared variable.

    Checks are taken in index order and go into the first group they do not
    conflict with, or into a new group. After every placement the groups are
    re-sorted by size (stable), so later checks try the smallest groups first.

    Args:
        graph: TannerGraph or parity-check matrix.

    Returns:
        list[list[int]]: groups of check indices.
    """
    if not isinstance(graph, TannerGraph):
        graph = build_graph(graph)

    # (checks, variables touched by those checks)
    groups = []
    for c in range(graph.num_checks):
        vars_c = set(graph.check_adj[c])
        for checks, touched in groups:
            if touched.isdisjoint(vars_c):
                checks.append(c)
                touched.update(vars_c)
                break
        else:
            groups.append(([c], vars_c))
        groups.sort(key=lambda group: len(group[0]))

    logger.debug("scheduled %d checks into %d groups", graph.num_checks, len(groups))
    return [checks for checks, _ in groups]


def validate_schedule(graph: TannerGraph, groups) -> None:
    """Raise ConfigurationError unless groups partition the checks into conflict-free sets."""
    seen = set()
    for k, group in enumerate(groups):
        if len(group) == 0:
            raise ConfigurationError(f"schedule group {k} is empty")
        touched = set()
        for c in group:
            if not 0 <= c < graph.num_checks:
                raise ConfigurationError(f"check index {c} out of range [0, {graph.num_checks})")
            if c in seen:
                raise ConfigurationError(f"check {c} appears more than once in the schedule")
            seen.add(c)
            vars_c = set(graph.check_adj[c])
            if not touched.isdisjoint(vars_c):
                raise ConfigurationError(
                    f"check {c} shares variables {sorted(touched & vars_c)} with group {k}"
                )
            touched |= vars_c
    if len(seen) != graph.num_checks:
        missing = sorted(set(range(graph.num_checks)) - seen)
        raise ConfigurationError(f"schedule misses checks {missing}")
