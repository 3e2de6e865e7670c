from __future__ import annotations

from typing import Any, List, Sequence


class SQLQuery:
    """Statement text with `$n` placeholders and the values they bind, in
    placeholder order"""

    __slots__ = ("text", "values")
    text: str
    values: List[Any]

    def __init__(self, text: str, values: Sequence[Any] = ()) -> None:
        self.text = text
        self.values = list(values)

    def __iter__(self):
        # allows `text, values = builder.build()`
        yield self.text
        yield self.values

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"text={self.text[:40]}... values={len(self.values)}>"
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(text={self.text!r}, "
            f"values={self.values!r})"
        )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, SQLQuery)
            and self.text == other.text
            and self.values == other.values
        )
