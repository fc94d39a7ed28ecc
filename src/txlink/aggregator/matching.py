from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from ..errors import InvariantViolation
from ..types import IntraFees, MatchPolicy
from .aggregates import AggIndex, TxosAggregates

LinkMatrix = List[List[int]]
InAggCmbn = Dict[AggIndex, List[Tuple[AggIndex, AggIndex]]]


@dataclass(frozen=True)
class MatchSet:
    """
    match_in_agg_to_val: matched input aggregate -> its value, in registration order
    val_to_match_out_agg: input value -> output aggregates matching that value
    """
    match_in_agg_to_val: Dict[AggIndex, int]
    val_to_match_out_agg: Dict[int, List[AggIndex]]

    @property
    def all_match_in_agg(self) -> List[AggIndex]:
        return list(self.match_in_agg_to_val)

    def value_of(self, in_agg: AggIndex) -> int:
        try:
            return self.match_in_agg_to_val[in_agg]
        except KeyError:
            raise InvariantViolation("Input aggregate is not matched", in_agg=in_agg) from None

    def out_aggs_for(self, in_agg: AggIndex) -> List[AggIndex]:
        val = self.value_of(in_agg)
        try:
            return self.val_to_match_out_agg[val]
        except KeyError:
            raise InvariantViolation(
                "Matched input aggregate has no matching output aggregate",
                in_agg=in_agg,
                value=val,
            ) from None


def _indices_by_value(values: List[int]) -> Dict[int, List[AggIndex]]:
    out: Dict[int, List[AggIndex]] = {}
    for idx, v in enumerate(values):
        out.setdefault(v, []).append(AggIndex(idx))
    return out


def match_agg_by_val(
    aggs: TxosAggregates,
    fees: int,
    intra_fees: Optional[IntraFees] = None,
    policy: MatchPolicy = MatchPolicy.OVERWRITE,
) -> MatchSet:
    """
    Matches input/output aggregates by value.

    Without intra fees, in and out match iff 0 <= in - out <= fees.
    With intra fees the admissible difference spans [-fees_maker, fees + fees_taker].

    policy decides what happens when several output values match one input value:
    OVERWRITE keeps the last one scanned, UNION keeps them all.
    """
    in_by_val = _indices_by_value(aggs.inputs.values)
    out_by_val = _indices_by_value(aggs.outputs.values)
    unique_in = sorted(in_by_val)
    unique_out = sorted(out_by_val)

    match_in_agg_to_val: Dict[AggIndex, int] = {}
    val_to_match_out_agg: Dict[int, List[AggIndex]] = {}

    has_intra_fees = intra_fees is not None and intra_fees.has_fees
    fees_taker = fees_maker = 0
    if has_intra_fees:
        fees_taker = fees + intra_fees.fees_taker
        # tx fees paid by makers are not taken into account
        fees_maker = -intra_fees.fees_maker

    for in_val in unique_in:
        for out_val in unique_out:
            diff = in_val - out_val

            if not has_intra_fees:
                # output values are ascending: no larger one can match
                if diff < 0:
                    break
                matched = diff <= fees
            else:
                matched = (fees_maker <= diff <= 0) or (0 <= diff <= fees_taker)

            if not matched:
                continue

            for in_idx in in_by_val[in_val]:
                if in_idx not in match_in_agg_to_val:
                    match_in_agg_to_val[in_idx] = in_val

            out_aggs = out_by_val[out_val]
            if policy is MatchPolicy.UNION and in_val in val_to_match_out_agg:
                known = val_to_match_out_agg[in_val]
                known.extend(o for o in out_aggs if o not in known)
            else:
                val_to_match_out_agg[in_val] = list(out_aggs)

    return MatchSet(match_in_agg_to_val, val_to_match_out_agg)


def compute_in_agg_cmbn(matches: MatchSet) -> InAggCmbn:
    """
    Maps each combined input aggregate to its valid splits (i, j) where:
      - i and j are matched aggregates (empty and target excluded)
      - i & j == 0
      - i > j, so symmetric splits appear once

    For a given key the splits are listed by increasing i, hence decreasing j.
    """
    matched = matches.all_match_in_agg
    if len(matched) < 2:
        return {}

    # first registered is the empty aggregate, last one the target
    tgt = matched[-1]
    aggs = sorted(a for a in matched[1:-1] if a <= tgt)

    mat: InAggCmbn = {}
    for i in aggs:
        j_max = min(i, tgt - i + 1)
        for j in aggs:
            if j >= j_max:
                break
            if (i & j) == 0:
                mat.setdefault(AggIndex(i + j), []).append((i, j))
    return mat


def new_link_matrix(nb_outs: int, nb_ins: int) -> LinkMatrix:
    return [[0] * nb_ins for _ in range(nb_outs)]


def update_link_matrix(
    mat: LinkMatrix,
    aggs: TxosAggregates,
    in_agg: AggIndex,
    out_agg: AggIndex,
    weight: int = 1,
) -> LinkMatrix:
    """Adds weight to every (output, input) cell covered by the pair of aggregates."""
    in_indexes = aggs.inputs.members[in_agg]
    for out_index in aggs.outputs.members[out_agg]:
        row = mat[out_index]
        for in_index in in_indexes:
            row[in_index] += weight
    return mat


def find_dtrm_links(mat: Optional[LinkMatrix], nb_cmbn: int) -> Set[Tuple[int, int]]:
    """Returns the (output, input) cells equal to nb_cmbn."""
    if mat is None or nb_cmbn <= 0:
        return set()
    return {
        (o, i)
        for o, row in enumerate(mat)
        for i, cell in enumerate(row)
        if cell == nb_cmbn
    }


def check_dtrm_links(aggs: TxosAggregates, matches: MatchSet) -> Set[Tuple[int, int]]:
    """
    Cheap detection of deterministic links, without the full search.

    Every (matched input aggregate, matching output aggregate) pair is counted once.
    The number of pairs touching the first input is used as the number of combinations.
    """
    nb_ins = aggs.inputs.size
    nb_outs = aggs.outputs.size
    if nb_ins == 0 or nb_outs == 0:
        return set()

    mat_cmbn = new_link_matrix(nb_outs, nb_ins)
    in_cmbn = [0] * nb_ins
    for in_agg in matches.match_in_agg_to_val:
        for out_agg in matches.out_aggs_for(in_agg):
            update_link_matrix(mat_cmbn, aggs, in_agg, out_agg)
            for in_index in aggs.inputs.members[in_agg]:
                in_cmbn[in_index] += 1

    return find_dtrm_links(mat_cmbn, in_cmbn[0])
