from __future__ import annotations

from typing import Any

from shiftledger.dialect import count_markers


class Predicates:
    """SQL condition fragments kept together with their positional args.

    Fragments and args are appended as one unit, so the rendered clause and
    ``args`` always line up marker for marker.
    """

    def __init__(self) -> None:
        self._fragments: list[str] = []
        self._args: list[Any] = []

    def add(self, fragment: str, *args: Any) -> "Predicates":
        markers = count_markers(fragment)
        if markers != len(args):
            raise ValueError(f"{fragment!r} has {markers} markers but {len(args)} args")
        self._fragments.append(fragment)
        self._args.extend(args)
        return self

    def add_if(self, value: Any, fragment: str) -> "Predicates":
        if value is None or value == "":
            return self
        return self.add(fragment, value)

    @property
    def args(self) -> list[Any]:
        return list(self._args)

    def where(self) -> str:
        if not self._fragments:
            return ""
        return " WHERE " + " AND ".join(self._fragments)

    def and_(self) -> str:
        if not self._fragments:
            return ""
        return " AND " + " AND ".join(self._fragments)
