import pytest

from txlink.aggregator import (
    AggIndex,
    MatchSet,
    check_dtrm_links,
    compute_in_agg_cmbn,
    match_agg_by_val,
    prepare_data,
)
from txlink.errors import ExitCode, InvariantViolation
from txlink.types import IntraFees, MatchPolicy, TxoSet


def _aggs(ins, outs):
    return prepare_data(TxoSet(inputs=dict(ins), outputs=dict(outs)))


def test_exact_match_without_fees():
    aggs = _aggs({"a": 5, "b": 3}, {"x": 5, "y": 3})
    m = match_agg_by_val(aggs, fees=0)
    # registered by increasing value
    assert m.all_match_in_agg == [0, 2, 1, 3]
    assert m.match_in_agg_to_val == {0: 0, 2: 3, 1: 5, 3: 8}
    assert m.val_to_match_out_agg == {0: [0], 3: [2], 5: [1], 8: [3]}


def test_fees_tolerance_below_input_value_only():
    aggs = _aggs({"a": 10}, {"x": 8})
    assert match_agg_by_val(aggs, fees=2).val_to_match_out_agg[10] == [1]
    assert 10 not in match_agg_by_val(aggs, fees=1).val_to_match_out_agg

    # outputs larger than inputs never match without intra fees
    aggs = _aggs({"a": 8}, {"x": 10})
    assert 8 not in match_agg_by_val(aggs, fees=5).val_to_match_out_agg


def test_intra_fees_widen_both_sides():
    aggs = _aggs({"a": 10}, {"x": 11})
    m = match_agg_by_val(aggs, fees=0, intra_fees=IntraFees(fees_maker=1, fees_taker=0))
    assert m.val_to_match_out_agg[10] == [1]

    m = match_agg_by_val(aggs, fees=0, intra_fees=IntraFees(fees_maker=0, fees_taker=1))
    assert 10 not in m.val_to_match_out_agg


def test_last_compatible_output_value_overwrites():
    # outputs sorted: x=9 (bit 0), y=1 (bit 1); 9 and 10 both within the band of 10
    aggs = _aggs({"a": 10}, {"x": 9, "y": 1})
    m = match_agg_by_val(aggs, fees=1)
    assert m.val_to_match_out_agg[10] == [3]


def test_union_policy_keeps_all_compatible_outputs():
    aggs = _aggs({"a": 10}, {"x": 9, "y": 1})
    m = match_agg_by_val(aggs, fees=1, policy=MatchPolicy.UNION)
    assert m.val_to_match_out_agg[10] == [1, 3]

    m = match_agg_by_val(aggs, fees=0, intra_fees=IntraFees(0, 1), policy=MatchPolicy.UNION)
    assert m.val_to_match_out_agg[10] == [1, 3]


def test_in_agg_cmbn_lists_disjoint_decreasing_splits():
    aggs = _aggs({"c": 3, "b": 2, "a": 1}, {"x": 3, "y": 2, "z": 1})
    mat = compute_in_agg_cmbn(match_agg_by_val(aggs, fees=0))
    assert mat == {
        3: [(2, 1)],
        5: [(4, 1)],
        6: [(4, 2)],
        7: [(4, 3), (5, 2), (6, 1)],
    }
    for key, pairs in mat.items():
        for i, j in pairs:
            assert i & j == 0
            assert i > j
            assert i + j == key


def test_in_agg_cmbn_without_matches():
    assert compute_in_agg_cmbn(MatchSet({}, {})) == {}
    aggs = _aggs({"a": 5}, {"x": 5})
    assert compute_in_agg_cmbn(match_agg_by_val(aggs, fees=0)) == {}


def test_precheck_finds_deterministic_links():
    aggs = _aggs({"a": 4_900_000_000, "b": 100_000_000}, {"x": 4_900_000_000, "b": 100_000_000})
    links = check_dtrm_links(aggs, match_agg_by_val(aggs, fees=0))
    assert links == {(0, 0), (1, 1)}


def test_precheck_without_deterministic_links():
    aggs = _aggs({"a": 5, "b": 5}, {"x": 5, "y": 5})
    assert check_dtrm_links(aggs, match_agg_by_val(aggs, fees=0)) == set()


def test_missing_output_match_is_an_invariant_violation():
    m = MatchSet({AggIndex(1): 5}, {})
    with pytest.raises(InvariantViolation) as exc:
        m.out_aggs_for(AggIndex(1))
    assert exc.value.exit_code == ExitCode.INTERNAL_ERROR
    assert exc.value.problem.code == "TXLINK_INVARIANT_VIOLATION"

    with pytest.raises(InvariantViolation):
        m.value_of(AggIndex(2))
