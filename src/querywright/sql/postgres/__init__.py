from .interface import PostgresConnection, PostgresPool

__all__ = ("PostgresConnection", "PostgresPool")
