import json

import pytest

from txlink.analyzer import LinkabilityAnalyzer
from txlink.config import AnalyzerSettings
from txlink.types import IntraFees, LinkerOption, TxoSet

REUSED = "15Z5YJaaNSxeynvr6uW6jQZLwq3n1Hu6RX"


def _reused_address_tx():
    return TxoSet.from_pairs(
        [("1KHWnqHHx3fQuRwPmwhZGbSYzDbN3SdhoR", 4_900_000_000), (REUSED, 100_000_000)],
        [("1NKToQ48X5qaMo1ndexWmHKnn6FNNViivq", 4_900_000_000), (REUSED, 100_000_000)],
    )


def test_inputs_merged_by_default():
    report = LinkabilityAnalyzer().process(_reused_address_tx())

    assert report.n_combinations == 1
    assert report.matrix == [[1, 1], [1, 1]]
    assert report.entropy == 0.0
    assert (REUSED, REUSED) in report.deterministic_links_by_id()
    assert len(report.deterministic_links) == 4


def test_without_merged_inputs():
    settings = AnalyzerSettings(options=frozenset({LinkerOption.PRECHECK, LinkerOption.LINKABILITY}))
    report = LinkabilityAnalyzer(settings).process(_reused_address_tx())

    assert report.n_combinations == 2
    assert report.entropy == pytest.approx(1.0)
    assert report.matrix == [[2, 1], [1, 2]]
    assert report.deterministic_links == [(0, 0), (1, 1)]
    assert report.link_probabilities == [[1.0, 0.5], [0.5, 1.0]]
    assert (REUSED, REUSED) in report.deterministic_links_by_id()


def test_fingerprint_is_order_insensitive():
    analyzer = LinkabilityAnalyzer()
    r1 = analyzer.process(TxoSet(inputs={"a": 1, "b": 2}, outputs={"x": 3}), fees=0)
    r2 = analyzer.process(TxoSet(inputs={"b": 2, "a": 1}, outputs={"x": 3}), fees=0)
    r3 = analyzer.process(TxoSet(inputs={"b": 2, "a": 1}, outputs={"x": 3}), fees=0, intra_fees=IntraFees(0, 1))

    assert r1.input_fingerprint == r2.input_fingerprint
    assert r1.input_fingerprint != r3.input_fingerprint


def test_process_payload_and_json():
    payload = {
        "inputs": {"a": 49, "b": 1},
        "outputs": {"x": 49, "y": 1},
        "fees": 1,
        "linked_txos": [],
        "intra_fees": {"fees_maker": 0, "fees_taker": 0},
    }
    settings = AnalyzerSettings(options=frozenset({LinkerOption.LINKABILITY}))
    report = LinkabilityAnalyzer(settings).process_payload(payload)

    assert report.fees == 1
    assert report.n_combinations == 2

    doc = json.loads(report.to_json())
    assert doc["n_combinations"] == 2
    assert doc["inputs"] == [["a", 49], ["b", 1]]
    assert doc["matrix"] == [[2, 1], [1, 2]]
    assert doc["deterministic_links"] == [["x", "a"], ["y", "b"]]
    assert doc["inconclusive"] is False


def test_inconclusive_report():
    settings = AnalyzerSettings.from_dict({"max_duration": 0, "options": ["linkability"]})
    report = LinkabilityAnalyzer(settings).process(TxoSet(inputs={"a": 5, "b": 5}, outputs={"x": 5, "y": 5}))

    assert report.inconclusive
    assert report.entropy is None
    assert report.link_probabilities is None
    assert report.to_json_dict()["matrix"] is None
