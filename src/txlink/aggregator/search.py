"""
Linkability search.

Depth-first traversal of the tree of input decompositions (right to left).
For each decomposition of the inputs we track the output decompositions
matching it, then back-propagate the number of child combinations to
the parents to weight every (input aggregate, output aggregate) link.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .aggregates import AggIndex, TxosAggregates
from .matching import InAggCmbn, LinkMatrix, MatchSet, new_link_matrix, update_link_matrix

logger = logging.getLogger(__name__)

EMPTY = AggIndex(0)

# remaining output aggregate -> left output aggregate -> (nb parent cmbn, nb child cmbn)
OutState = Dict[AggIndex, Dict[AggIndex, Tuple[int, int]]]


@dataclass(frozen=True)
class SearchResult:
    """n_combinations is 0 and matrix None when the search was aborted."""
    n_combinations: int
    matrix: Optional[LinkMatrix]

    @property
    def aborted(self) -> bool:
        return self.matrix is None


@dataclass
class _Task:
    idx_il: int         # resume position in the decompositions of ir
    il: AggIndex        # left input aggregate fixed by the parent
    ir: AggIndex        # right input aggregate to decompose
    d_out: OutState


def _match_outputs(
    d_out: OutState,
    n_il: AggIndex,
    n_ir: AggIndex,
    ot_gt: AggIndex,
    matches: MatchSet,
) -> OutState:
    """Output decompositions compatible with the split (n_il, n_ir) of the inputs."""
    n_d_out: OutState = {}
    left_candidates = matches.out_aggs_for(n_il)
    right_valid = set(matches.out_aggs_for(n_ir))

    for o_r, l_ol in d_out.items():
        nb_prt = sum(s[0] for s in l_ol.values())
        sol = ot_gt - o_r
        for n_ol in left_candidates:
            if sol & n_ol:
                continue
            n_sol = sol + n_ol
            n_or = AggIndex(ot_gt - n_sol)
            if n_or in right_valid:
                n_d_out.setdefault(n_or, {})[n_ol] = (nb_prt, 0)
    return n_d_out


def compute_link_matrix(
    aggs: TxosAggregates,
    matches: MatchSet,
    in_agg_cmbn: InAggCmbn,
    max_duration: float,
    clock: Callable[[], float] = time.monotonic,
) -> SearchResult:
    """
    Computes the number of combinations and the linkability matrix.

    max_duration is in seconds. The deadline is checked once per task;
    when it is reached the search is abandoned and no matrix is returned.
    """
    it_gt = aggs.inputs.full
    ot_gt = aggs.outputs.full
    d_links: Dict[Tuple[AggIndex, AggIndex], int] = {}
    nb_tx_cmbn = 0

    stack: List[_Task] = [_Task(0, EMPTY, it_gt, {ot_gt: {EMPTY: (1, 0)}})]
    deadline = clock() + max_duration

    while stack:
        if clock() >= deadline:
            logger.warning("linkability search aborted after %ss (%d pending tasks)", max_duration, len(stack))
            return SearchResult(0, None)

        t = stack[-1]
        ircs = in_agg_cmbn.get(t.ir, [])
        n_idx_il = t.idx_il
        pushed = False

        while n_idx_il < len(ircs):
            n_ir, n_il = ircs[n_idx_il]

            # left aggregates are decreasing: nothing left to process for il
            if n_il <= t.il:
                n_idx_il = len(ircs)
                break

            n_idx_il += 1
            t.idx_il = n_idx_il
            n_d_out = _match_outputs(t.d_out, n_il, n_ir, ot_gt, matches)
            if n_d_out:
                stack.append(_Task(0, n_il, n_ir, n_d_out))
                pushed = True
                break

        if pushed:
            continue

        t = stack.pop()
        if not stack:
            nb_tx_cmbn = t.d_out[ot_gt][EMPTY][1]
            continue

        pt = stack[-1]
        for o_r, l_ol in t.d_out.items():
            r_key = (t.ir, o_r)
            for ol, (nb_prnt, nb_chld) in l_ol.items():
                l_key = (t.il, ol)
                nb_occur = nb_chld + 1
                d_links[r_key] = d_links.get(r_key, 0) + nb_prnt
                d_links[l_key] = d_links.get(l_key, 0) + nb_prnt * nb_occur

                # back-propagates the number of child combinations
                p_d_out = pt.d_out[AggIndex(ol + o_r)]
                for p_ol, (p_nb_prt, p_nb_chld) in p_d_out.items():
                    p_d_out[p_ol] = (p_nb_prt, p_nb_chld + nb_occur)

    # the whole transaction is always a valid combination
    links = new_link_matrix(aggs.outputs.size, aggs.inputs.size)
    update_link_matrix(links, aggs, it_gt, ot_gt)
    nb_tx_cmbn += 1

    for (in_agg, out_agg), mult in d_links.items():
        update_link_matrix(links, aggs, in_agg, out_agg, weight=mult)

    logger.debug("linkability search done: %d combinations, %d links", nb_tx_cmbn, len(d_links))
    return SearchResult(nb_tx_cmbn, links)
