from txlink.aggregator import merge_sets, power_set


def test_power_set_ordered_by_bitmask():
    subsets = list(power_set(["a", "b", "c"]))
    assert len(subsets) == 8
    assert subsets[0] == ()
    assert subsets[1] == ("a",)
    assert subsets[2] == ("b",)
    assert subsets[3] == ("a", "b")
    assert subsets[5] == ("a", "c")
    assert subsets[7] == ("a", "b", "c")


def test_power_set_of_empty_sequence():
    assert list(power_set([])) == [()]


def test_merge_sets_is_transitive():
    merged = merge_sets([{"a", "b"}, {"c"}, {"d", "e"}, {"b", "d"}])
    assert merged == [{"a", "b", "d", "e"}, {"c"}]


def test_merge_sets_keeps_disjoint_sets():
    merged = merge_sets([["x"], ["y", "z"]])
    assert merged == [{"x"}, {"y", "z"}]
