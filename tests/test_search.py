import itertools

import pytest

from txlink.aggregator import (
    compute_in_agg_cmbn,
    compute_link_matrix,
    match_agg_by_val,
    prepare_data,
)
from txlink.types import TxoSet


def _search(ins, outs, fees=0, max_duration=60):
    aggs = prepare_data(TxoSet(inputs=dict(ins), outputs=dict(outs)))
    matches = match_agg_by_val(aggs, fees)
    return compute_link_matrix(aggs, matches, compute_in_agg_cmbn(matches), max_duration)


def _partitions(items):
    if not items:
        yield []
        return
    first, rest = items[0], items[1:]
    for p in _partitions(rest):
        yield [[first]] + p
        for k in range(len(p)):
            yield p[:k] + [[first] + p[k]] + p[k + 1:]


def _brute_force(in_vals, out_vals):
    """Counts every pairing of input blocks with output blocks of equal value."""
    nb_cmbn = 0
    mat = [[0] * len(in_vals) for _ in out_vals]
    for p_in in _partitions(list(range(len(in_vals)))):
        for p_out in _partitions(list(range(len(out_vals)))):
            if len(p_in) != len(p_out):
                continue
            for perm in itertools.permutations(p_out):
                pairs = list(zip(p_in, perm))
                if all(sum(in_vals[i] for i in b) == sum(out_vals[o] for o in ob) for b, ob in pairs):
                    nb_cmbn += 1
                    for b, ob in pairs:
                        for i in b:
                            for o in ob:
                                mat[o][i] += 1
    return nb_cmbn, mat


def test_single_input_single_output():
    res = _search({"a": 10}, {"x": 10})
    assert res.n_combinations == 1
    assert res.matrix == [[1]]
    assert not res.aborted


def test_two_equal_inputs_two_equal_outputs():
    res = _search({"a": 5, "b": 5}, {"x": 5, "y": 5})
    # whole tx + the two bijections
    assert res.n_combinations == 3
    assert res.matrix == [[2, 2], [2, 2]]


def test_distinct_values_have_one_split():
    res = _search({"a": 49, "b": 1}, {"x": 49, "y": 1})
    assert res.n_combinations == 2
    assert res.matrix == [[2, 1], [1, 2]]


def test_three_by_three():
    res = _search({"c": 3, "b": 2, "a": 1}, {"x": 3, "y": 2, "z": 1})
    assert res.n_combinations == 6
    assert res.matrix == [
        [5, 3, 3],
        [3, 5, 2],
        [3, 2, 5],
    ]


def test_two_inputs_four_outputs():
    res = _search({"a": 2, "b": 2}, {"w": 1, "x": 1, "y": 1, "z": 1})
    assert res.n_combinations == 7
    assert res.matrix == [[4, 4]] * 4


def test_unbalanced_split_only_counts_whole_tx():
    res = _search({"a": 6, "b": 4}, {"x": 5, "y": 3, "z": 2})
    assert res.n_combinations == 1
    assert res.matrix == [[1, 1]] * 3


@pytest.mark.parametrize(
    "in_vals,out_vals",
    [
        ([3, 2, 1], [3, 2, 1]),
        ([5, 5], [5, 5]),
        ([2, 2], [1, 1, 1, 1]),
        ([4, 3, 2, 1], [5, 5]),
        ([3, 3, 2], [4, 2, 2]),
    ],
)
def test_matches_brute_force_enumeration(in_vals, out_vals):
    ins = {f"i{k}": v for k, v in enumerate(in_vals)}
    outs = {f"o{k}": v for k, v in enumerate(out_vals)}
    res = _search(ins, outs)
    nb_cmbn, mat = _brute_force(in_vals, out_vals)
    assert res.n_combinations == nb_cmbn
    assert res.matrix == mat


def test_cells_bounded_by_nb_combinations():
    res = _search({"a": 4, "b": 3, "c": 2, "d": 1}, {"x": 4, "y": 3, "z": 2, "t": 1})
    assert res.n_combinations > 1
    for row in res.matrix:
        for cell in row:
            assert 0 <= cell <= res.n_combinations


def test_zero_duration_aborts():
    res = _search({"a": 5, "b": 5}, {"x": 5, "y": 5}, max_duration=0)
    assert res.aborted
    assert res.n_combinations == 0
    assert res.matrix is None


def test_deadline_uses_injected_clock():
    ticks = iter(range(100))
    aggs = prepare_data(TxoSet(inputs={"a": 3, "b": 2, "c": 1}, outputs={"x": 3, "y": 2, "z": 1}))
    matches = match_agg_by_val(aggs, 0)
    res = compute_link_matrix(
        aggs, matches, compute_in_agg_cmbn(matches), max_duration=2, clock=lambda: next(ticks)
    )
    assert res.aborted
