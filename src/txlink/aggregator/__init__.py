"""Aggregates of txos: building, matching by value and linkability search."""

from .aggregates import AggIndex, AggregateSide, TxosAggregates, prepare_data, prepare_txos
from .matching import (
    MatchSet,
    check_dtrm_links,
    compute_in_agg_cmbn,
    find_dtrm_links,
    match_agg_by_val,
    new_link_matrix,
    update_link_matrix,
)
from .search import SearchResult, compute_link_matrix
from .utils import merge_sets, power_set

__all__ = [
    "AggIndex",
    "AggregateSide",
    "TxosAggregates",
    "prepare_data",
    "prepare_txos",
    "MatchSet",
    "check_dtrm_links",
    "compute_in_agg_cmbn",
    "find_dtrm_links",
    "match_agg_by_val",
    "new_link_matrix",
    "update_link_matrix",
    "SearchResult",
    "compute_link_matrix",
    "merge_sets",
    "power_set",
]
