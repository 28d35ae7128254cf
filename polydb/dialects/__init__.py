from polydb.dialects.base import ConvertedStatement, DialectConverter
from polydb.dialects.mysql import MySQLConverter
from polydb.dialects.postgres import PostgresConverter
from polydb.dialects.sqlite import SQLiteConverter

__all__ = [
    "ConvertedStatement",
    "DialectConverter",
    "MySQLConverter",
    "PostgresConverter",
    "SQLiteConverter",
]
