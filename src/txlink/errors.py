from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class ExitCode(int, Enum):
    OK = 0
    CONFIG_INVALID = 10
    INPUT_INVALID = 20
    RUNTIME_ERROR = 30
    INTERNAL_ERROR = 50


@dataclass(frozen=True)
class TxlinkProblem:
    code: str                 # stable machine code, e.g. "TXLINK_DUPLICATE_TXO"
    category: str             # "config" | "input" | "runtime" | "internal"
    message: str              # short human message
    details: Dict[str, Any]   # structured details for audit/debug
    remediation: Optional[str] = None  # actionable next step


class TxlinkException(Exception):
    def __init__(
        self,
        problem: TxlinkProblem,
        exit_code: ExitCode,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(problem.message)
        self.problem = problem
        self.exit_code = exit_code
        self.cause = cause


class DuplicateTxoError(TxlinkException):
    def __init__(self, side: str, txo_id: str) -> None:
        super().__init__(
            TxlinkProblem(
                code="TXLINK_DUPLICATE_TXO",
                category="input",
                message=f"Duplicate txo id in {side}: {txo_id}",
                details={"side": side, "txo_id": txo_id},
                remediation="Each id may appear only once per side; fix the transaction data.",
            ),
            ExitCode.INPUT_INVALID,
        )
        self.side = side
        self.txo_id = txo_id


class InvariantViolation(TxlinkException):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            TxlinkProblem(
                code="TXLINK_INVARIANT_VIOLATION",
                category="internal",
                message=message,
                details=details,
            ),
            ExitCode.INTERNAL_ERROR,
        )


def problem_to_dict(p: TxlinkProblem) -> Dict[str, Any]:
    d = asdict(p)
    if d.get("remediation") is None:
        d.pop("remediation", None)
    return d
