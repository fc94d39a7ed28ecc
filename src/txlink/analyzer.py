"""
Facade computing a linkability report for a single transaction.

Accepts a TxoSet (or a dict payload, e.g. from JSON/YAML input) and returns
a LinkabilityReport with the number of combinations, the entropy of the
transaction and its linkability matrix.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Collection, Dict, Iterable, List, Optional, Tuple

from .aggregator.matching import LinkMatrix
from .config import AnalyzerSettings
from .linker import TxosLinker
from .report import canonicalize, compute_input_fingerprint, utc_now_iso
from .types import IntraFees, LinkerOption, TxoSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkabilityReport:
    txos: TxoSet
    fees: int
    n_combinations: int
    matrix: Optional[LinkMatrix]
    deterministic_links: List[Tuple[int, int]]
    input_fingerprint: str
    duration: float

    @property
    def inconclusive(self) -> bool:
        return self.matrix is None

    @property
    def entropy(self) -> Optional[float]:
        if self.n_combinations <= 0:
            return None
        return math.log2(self.n_combinations)

    @property
    def link_probabilities(self) -> Optional[List[List[float]]]:
        if self.matrix is None or self.n_combinations <= 0:
            return None
        return [[cell / self.n_combinations for cell in row] for row in self.matrix]

    def deterministic_links_by_id(self) -> List[Tuple[str, str]]:
        """Deterministic links as (output id, input id) pairs."""
        out_ids = list(self.txos.outputs)
        in_ids = list(self.txos.inputs)
        return [(out_ids[o], in_ids[i]) for o, i in self.deterministic_links]

    def to_json_dict(self) -> Dict[str, Any]:
        return canonicalize({
            "created_at": utc_now_iso(),
            "input_fingerprint": self.input_fingerprint,
            # lists keep the order of the matrix axes
            "inputs": [[k, v] for k, v in self.txos.inputs.items()],
            "outputs": [[k, v] for k, v in self.txos.outputs.items()],
            "fees": self.fees,
            "n_combinations": self.n_combinations,
            "entropy": self.entropy,
            "inconclusive": self.inconclusive,
            "matrix": self.matrix,
            "link_probabilities": self.link_probabilities,
            "deterministic_links": [list(x) for x in self.deterministic_links_by_id()],
            "duration": self.duration,
        })

    def to_json(self, *, indent: int = 2) -> str:
        return json.dumps(self.to_json_dict(), ensure_ascii=False, sort_keys=True, indent=indent)


class LinkabilityAnalyzer:
    def __init__(self, settings: Optional[AnalyzerSettings] = None):
        self.settings = settings or AnalyzerSettings()

    def process(
        self,
        txos: TxoSet,
        fees: int = 0,
        linked_txos: Optional[Collection[Iterable[str]]] = None,
        intra_fees: Optional[IntraFees] = None,
    ) -> LinkabilityReport:
        options = self.settings.options
        linked = [set(s) for s in linked_txos or []]
        if LinkerOption.MERGE_INPUTS in options and txos.inputs:
            # inputs assumed to be controlled by a same entity
            linked.append(set(txos.inputs))

        started = time.monotonic()
        linker = TxosLinker(fees, self.settings.linker)
        result = linker.process(txos, linked, options, intra_fees)
        duration = time.monotonic() - started

        logger.info(
            "analysed %d inputs / %d outputs: %d combinations in %.3fs",
            len(result.txos.inputs), len(result.txos.outputs), result.n_combinations, duration,
        )
        return LinkabilityReport(
            txos=result.txos,
            fees=fees,
            n_combinations=result.n_combinations,
            matrix=result.matrix,
            deterministic_links=sorted(result.deterministic_links),
            input_fingerprint=compute_input_fingerprint(txos, fees, intra_fees),
            duration=duration,
        )

    def process_payload(self, payload: Dict[str, Any]) -> LinkabilityReport:
        """
        Build the transaction from a payload dict and process it.

        Expected schema:
        {
          "inputs": {"id": value, ...},
          "outputs": {"id": value, ...},
          "fees": 0,
          "linked_txos": [["id", ...], ...],
          "intra_fees": {"fees_maker": 0, "fees_taker": 0}
        }
        """
        txos = TxoSet.from_pairs(
            ((str(k), int(v)) for k, v in payload.get("inputs", {}).items()),
            ((str(k), int(v)) for k, v in payload.get("outputs", {}).items()),
        )
        intra = payload.get("intra_fees")
        intra_fees = None
        if isinstance(intra, dict):
            intra_fees = IntraFees(
                fees_maker=int(intra.get("fees_maker", 0)),
                fees_taker=int(intra.get("fees_taker", 0)),
            )
        return self.process(
            txos,
            fees=int(payload.get("fees", 0)),
            linked_txos=[[str(x) for x in s] for s in payload.get("linked_txos", []) or []],
            intra_fees=intra_fees,
        )
