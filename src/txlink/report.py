from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .types import IntraFees, TxoSet


# =============================================================================
# Canonicalization + hashing
# =============================================================================

def canonicalize(obj: Any, *, float_ndigits: int = 8) -> Any:
    """
    Convert obj into a JSON-serializable, deterministic representation:
    - dict keys sorted
    - dataclasses converted to dict
    - tuples and sets converted to lists (sets sorted)
    - floats rounded to float_ndigits
    """
    if obj is None:
        return None

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (bool, int, str)):
        return obj

    if isinstance(obj, float):
        return round(obj, float_ndigits)

    if isinstance(obj, (set, frozenset)):
        return [canonicalize(x, float_ndigits=float_ndigits) for x in sorted(obj)]

    # caller is responsible for a stable ordering
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x, float_ndigits=float_ndigits) for x in obj]

    if is_dataclass(obj):
        return canonicalize(asdict(obj), float_ndigits=float_ndigits)

    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k in sorted(obj.keys(), key=lambda x: str(x)):
            out[str(k)] = canonicalize(obj[k], float_ndigits=float_ndigits)
        return out

    return str(obj)


def _canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def _sha256_hex_obj(obj: Any) -> str:
    return hashlib.sha256(_canonical_json_bytes(obj)).hexdigest()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def compute_input_fingerprint(
    txos: TxoSet,
    fees: int,
    intra_fees: Optional[IntraFees] = None,
) -> str:
    """
    Deterministic fingerprint of an analysed transaction.
    Order-insensitive: txos are compared as id -> value mappings.
    """
    obj: Dict[str, Any] = {
        "inputs": txos.inputs,
        "outputs": txos.outputs,
        "fees": fees,
    }
    if intra_fees is not None and intra_fees.has_fees:
        obj["intra_fees"] = asdict(intra_fees)
    return _sha256_hex_obj(obj)
