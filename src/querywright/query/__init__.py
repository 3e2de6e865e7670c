from .builder import QueryBuilder, SelectMode
from .condition import UNSET, Equals, In, IsNotNull, IsNull, Op
from .sql import SQLQuery

__all__ = (
    "QueryBuilder",
    "SelectMode",
    "SQLQuery",
    "UNSET",
    "Equals",
    "In",
    "IsNull",
    "IsNotNull",
    "Op",
)
