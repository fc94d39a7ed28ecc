from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, NewType, Tuple

from ..types import TxoSet
from .utils import power_set

# Bitmask over the raw txos of one side: bit i set <=> txo i is a member.
# Used both as a set and as an index into the aggregate tables.
AggIndex = NewType("AggIndex", int)


@dataclass(frozen=True)
class AggregateSide:
    """
    txos: txos sorted by decreasing value (null values removed)
    members: aggregate index -> indices of its txos
    values: aggregate index -> sum of its txos values
    """
    txos: Dict[str, int]
    members: List[Tuple[int, ...]]
    values: List[int]

    @property
    def size(self) -> int:
        return len(self.txos)

    @property
    def full(self) -> AggIndex:
        return AggIndex((1 << self.size) - 1)


@dataclass(frozen=True)
class TxosAggregates:
    inputs: AggregateSide
    outputs: AggregateSide

    def txos(self) -> TxoSet:
        return TxoSet(inputs=dict(self.inputs.txos), outputs=dict(self.outputs.txos))


def prepare_txos(txos: Dict[str, int]) -> AggregateSide:
    """
    Builds the aggregates of one side.
    Callers must enforce the size limit first: the table has 2^n entries.
    """
    kept = [(k, v) for k, v in txos.items() if v > 0]
    # sorted() is stable: equal values keep their input order
    kept = sorted(kept, key=lambda kv: kv[1], reverse=True)
    values = [v for _, v in kept]

    members = list(power_set(range(len(kept))))
    agg_values = [sum(values[i] for i in m) for m in members]
    return AggregateSide(txos=dict(kept), members=members, values=agg_values)


def prepare_data(txos: TxoSet) -> TxosAggregates:
    return TxosAggregates(
        inputs=prepare_txos(txos.inputs),
        outputs=prepare_txos(txos.outputs),
    )
