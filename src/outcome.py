from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from reason_library import kind_of, match_reason


@dataclass(frozen=True)
class Outcome:
    """
    Result of a core operation. Expected business-rule violations come back as
    ok=False with a reason code; only infrastructure faults are raised.
    """

    ok: bool
    value: Any = None
    code: str = ""
    detail: str = ""

    @property
    def kind(self) -> str | None:
        if self.ok:
            return None
        return kind_of(self.code)

    @property
    def message(self) -> str:
        if self.ok:
            return "ok"
        return match_reason(self.code)


def success(value: Any = None) -> Outcome:
    return Outcome(ok=True, value=value)


def failure(code: str, detail: str = "") -> Outcome:
    return Outcome(ok=False, code=code, detail=detail)
