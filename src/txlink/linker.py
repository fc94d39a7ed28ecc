"""
Linkability between the input txos and the output txos of a transaction.

A TxosLinker is a session: it owns the packs it creates (txos known to be
controlled by a same entity, merged into a single synthetic input) for its
whole lifetime. Each call to process() unwinds the packs it created before
returning, so the result is expressed in terms of the caller's txos.
"""

from __future__ import annotations

import logging
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .aggregator import (
    check_dtrm_links,
    compute_in_agg_cmbn,
    compute_link_matrix,
    find_dtrm_links,
    match_agg_by_val,
    merge_sets,
    new_link_matrix,
    prepare_data,
)
from .aggregator.matching import LinkMatrix
from .config import LinkerConfig
from .types import IntraFees, LinkerOption, LinkerResult, Pack, TxoSet

logger = logging.getLogger(__name__)

MARKER_FEES = "FEES"
MARKER_PACK = "PACK_I"


class TxosLinker:
    def __init__(self, fees: int = 0, config: Optional[LinkerConfig] = None):
        """
        fees: amount of fees paid by the transaction
        config: limits (max txos per side, max duration of the search)
        """
        if fees < 0:
            raise ValueError(f"fees must be non-negative, got {fees}")
        self.fees_orig = fees
        self.fees = fees
        self.config = config or LinkerConfig()
        self._packs: List[Pack] = []

    @property
    def packs(self) -> Tuple[Pack, ...]:
        return tuple(self._packs)

    def process(
        self,
        txos: TxoSet,
        linked_txos: Optional[Collection[Iterable[str]]] = None,
        options: Collection[LinkerOption] = (LinkerOption.PRECHECK, LinkerOption.LINKABILITY),
        intra_fees: Optional[IntraFees] = None,
    ) -> LinkerResult:
        """
        Computes the linkability between the inputs and the outputs of txos.

        linked_txos: sets of input ids known to be controlled by a same entity
        options: PRECHECK, LINKABILITY and/or MERGE_FEES
        intra_fees: max "fees" exchanged among participants (pooled transactions)
        """
        first_pack = len(self._packs)
        txos = txos.copy()

        # Packing txos controlled by a same entity lowers the entropy and speeds up the search
        if linked_txos:
            txos = self.pack_linked_txos(linked_txos, txos)

        if LinkerOption.MERGE_FEES in options and self.fees_orig > 0:
            # fees handled as an additional output
            self.fees = 0
            txos.add_output(MARKER_FEES, self.fees_orig)
        else:
            self.fees = self.fees_orig

        has_intra_fees = intra_fees is not None and intra_fees.has_fees
        policy = self.config.match_policy

        nb_cmbn = 0
        mat_lnk: Optional[LinkMatrix] = new_link_matrix(len(txos.outputs), len(txos.inputs))
        dtrm_lnks: Set[Tuple[int, int]] = set()

        if LinkerOption.PRECHECK in options and self._check_limit_ok(txos) and not has_intra_fees:
            aggs = prepare_data(txos)
            txos = aggs.txos()
            matches = match_agg_by_val(aggs, self.fees, intra_fees, policy)
            dtrm_lnks = check_dtrm_links(aggs, matches)
            logger.debug("precheck found %d deterministic links", len(dtrm_lnks))

            # returned as is when the linkability is not computed
            mat_lnk = new_link_matrix(len(txos.outputs), len(txos.inputs))
            for o, i in dtrm_lnks:
                mat_lnk[o][i] = 1

        if not txos.inputs or not txos.outputs:
            # everything merged into a single block
            nb_cmbn = 1
            mat_lnk = [[1] * len(txos.inputs) for _ in txos.outputs]

        elif LinkerOption.LINKABILITY in options and self._check_limit_ok(txos):
            if dtrm_lnks:
                txos = self.pack_linked_txos(self._dtrm_link_sets(dtrm_lnks, txos), txos)

            aggs = prepare_data(txos)
            txos = aggs.txos()
            matches = match_agg_by_val(aggs, self.fees, intra_fees, policy)
            in_agg_cmbn = compute_in_agg_cmbn(matches)

            result = compute_link_matrix(aggs, matches, in_agg_cmbn, self.config.max_duration)
            nb_cmbn = result.n_combinations
            mat_lnk = result.matrix
            dtrm_lnks = find_dtrm_links(mat_lnk, nb_cmbn)

        new_packs = self._packs[first_pack:]
        if new_packs:
            txos, mat_lnk = self.unpack_link_matrix(mat_lnk, txos, new_packs)
            # without a search, the matrix only flags the precheck links with 1
            dtrm_lnks = find_dtrm_links(mat_lnk, nb_cmbn or 1)

        return LinkerResult(nb_cmbn, mat_lnk, dtrm_lnks, txos)

    def pack_linked_txos(self, linked_txos: Collection[Iterable[str]], txos: TxoSet) -> TxoSet:
        """
        Packs input txos known to be controlled by a same entity.
        Sets sharing a txo are merged first. Ids which are not inputs of txos are ignored.
        """
        idx = len(self._packs)
        packed = txos.copy()

        for group in merge_sets(linked_txos):
            idx += 1
            ins = tuple((k, v) for k, v in packed.inputs.items() if k in group)
            if not ins:
                continue

            for k, _ in ins:
                del packed.inputs[k]
            pack = Pack(label=f"{MARKER_PACK}{idx}", members=ins)
            packed.add_input(pack.label, pack.value)
            self._packs.append(pack)
            logger.debug("packed %d inputs into %s", len(ins), pack.label)

        return packed

    def unpack_link_matrix(
        self,
        mat_lnk: Optional[LinkMatrix],
        txos: TxoSet,
        packs: Optional[Sequence[Pack]] = None,
    ) -> Tuple[TxoSet, Optional[LinkMatrix]]:
        """Unpacks packs (all packs of the session by default) in reverse order of creation."""
        if packs is None:
            packs = self._packs
        for pack in reversed(packs):
            txos, mat_lnk = self._unpack(mat_lnk, txos, pack)
        return txos, mat_lnk

    def _unpack(
        self,
        mat_lnk: Optional[LinkMatrix],
        txos: TxoSet,
        pack: Pack,
    ) -> Tuple[TxoSet, Optional[LinkMatrix]]:
        keys = list(txos.inputs)
        if pack.label not in txos.inputs:
            # removed with the null values
            logger.debug("pack %s not found in inputs, skipped", pack.label)
            return txos, mat_lnk

        idx = keys.index(pack.label)
        pairs = list(txos.inputs.items())
        new_txos = TxoSet.from_pairs(
            pairs[:idx] + list(pack.members) + pairs[idx + 1:],
            txos.outputs.items(),
        )
        if mat_lnk is None:
            return new_txos, None

        # all members share the column of the pack
        width = len(pack.members)
        new_mat = [row[:idx] + [row[idx]] * width + row[idx + 1:] for row in mat_lnk]
        return new_txos, new_mat

    def _dtrm_link_sets(self, dtrm_lnks: Set[Tuple[int, int]], txos: TxoSet) -> List[Set[str]]:
        """Groups the inputs deterministically linked to a same output."""
        in_ids = list(txos.inputs)
        by_out: Dict[int, Set[str]] = {}
        for o, i in sorted(dtrm_lnks):
            by_out.setdefault(o, set()).add(in_ids[i])
        return list(by_out.values())

    def _check_limit_ok(self, txos: TxoSet) -> bool:
        ok = max(len(txos.inputs), len(txos.outputs)) <= self.config.max_txos
        if not ok:
            logger.debug(
                "too many txos (%d inputs, %d outputs, max %d)",
                len(txos.inputs), len(txos.outputs), self.config.max_txos,
            )
        return ok
