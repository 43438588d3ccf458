from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

from .codec import parse_response, parse_result_code

Extra = Union[str, Sequence[str], None]


@dataclass(frozen=True)
class Result:
    """One decoded AGI response line.

    ``status`` is the leading status token (``"200"``, ``"510"``...) and
    ``extra`` is whatever follows it, untouched. Commands that need more
    structure decode ``extra`` themselves.
    """

    status: str
    extra: Extra = None
    raw: str = ""

    @classmethod
    def from_line(cls, line: str) -> "Result":
        status, extra = parse_response(line)
        return cls(status=status, extra=extra, raw=line)

    @property
    def result(self) -> Optional[str]:
        """Value of the ``result=`` field in the payload, if present."""
        if self.raw:
            return parse_result_code(self.raw)
        if isinstance(self.extra, str):
            return parse_result_code(self.extra)
        return None

    def with_extra(self, extra: Extra) -> "Result":
        return replace(self, extra=extra)
