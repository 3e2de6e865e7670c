import re
from typing import Any, List, Optional, Sequence, Tuple

from querywright.exception import QuerywrightError

DOLLAR_POSITIONAL = re.compile(r"\$(\d+)")


def convert_positional(
    query: str,
    values: Optional[Sequence[Any]] = None,
    positional_sub: str = "%s",
) -> Tuple[str, List[Any]]:
    """Rewrite `$n` placeholders into the driver's positional marker.

    The driver binds markers strictly left to right, so the value list is
    rebuilt in marker order. This keeps raw statements that reuse or reorder
    indices (`$2 ... $1 ... $2`) working.
    """
    values = list(values or ())
    ordered: List[Any] = []

    def _sub(match: re.Match) -> str:
        index = int(match.group(1))
        if index < 1 or index > len(values):
            raise QuerywrightError(
                f"Could not properly convert SQL params: ${index} has no "
                f"matching value ({len(values)} supplied)"
            )
        ordered.append(values[index - 1])
        return positional_sub

    query = DOLLAR_POSITIONAL.sub(_sub, query)
    return query, ordered
