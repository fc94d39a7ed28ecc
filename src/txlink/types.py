from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import DuplicateTxoError


class LinkerOption(str, Enum):
    PRECHECK = "PRECHECK"
    LINKABILITY = "LINKABILITY"
    MERGE_FEES = "MERGE_FEES"
    # consumed by the analyzer facade, never by TxosLinker
    MERGE_INPUTS = "MERGE_INPUTS"


class MatchPolicy(str, Enum):
    # keep only the last compatible output value per input value
    OVERWRITE = "OVERWRITE"
    # keep the output aggregates of every compatible output value
    UNION = "UNION"


class PackSide(str, Enum):
    INPUTS = "INPUTS"


def _insert(side: Dict[str, int], side_name: str, txo_id: str, value: int) -> None:
    if txo_id in side:
        raise DuplicateTxoError(side_name, txo_id)
    side[txo_id] = int(value)


@dataclass
class TxoSet:
    """
    Inputs and outputs of a transaction as ordered id -> value mappings.

    Ids are unique within a side. Inserting an id twice raises DuplicateTxoError.
    """
    inputs: Dict[str, int] = field(default_factory=dict)
    outputs: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_pairs(
        cls,
        inputs: Iterable[Tuple[str, int]],
        outputs: Iterable[Tuple[str, int]],
    ) -> TxoSet:
        txos = cls()
        for txo_id, value in inputs:
            txos.add_input(txo_id, value)
        for txo_id, value in outputs:
            txos.add_output(txo_id, value)
        return txos

    def add_input(self, txo_id: str, value: int) -> None:
        _insert(self.inputs, "inputs", txo_id, value)

    def add_output(self, txo_id: str, value: int) -> None:
        _insert(self.outputs, "outputs", txo_id, value)

    def copy(self) -> TxoSet:
        return TxoSet(inputs=dict(self.inputs), outputs=dict(self.outputs))


@dataclass(frozen=True)
class IntraFees:
    """
    Max "fees" exchanged among participants of a pooled transaction.

    fees_maker: max amount a participant may receive from the others
    fees_taker: max amount a participant may pay to all the others
    """
    fees_maker: int = 0
    fees_taker: int = 0

    @property
    def has_fees(self) -> bool:
        return self.fees_maker > 0 or self.fees_taker > 0


@dataclass(frozen=True)
class Pack:
    label: str
    members: Tuple[Tuple[str, int], ...]
    side: PackSide = PackSide.INPUTS

    @property
    def value(self) -> int:
        return sum(v for _, v in self.members)


@dataclass(frozen=True)
class LinkerResult:
    """
    n_combinations: number of valid partitions (0 when unknown)
    matrix: [output][input] counts, None when the search ran out of time
    deterministic_links: (output index, input index) pairs linked in every partition
    txos: txos used for the analysis (fee-augmented, packs unwound)
    """
    n_combinations: int
    matrix: Optional[List[List[int]]]
    deterministic_links: Set[Tuple[int, int]]
    txos: TxoSet

    @property
    def inconclusive(self) -> bool:
        return self.matrix is None
