from .connection import Connection, Pool, QueryResult
from .interface import BaseInterface

__all__ = ("BaseInterface", "Connection", "Pool", "QueryResult")
