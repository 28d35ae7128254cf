"""
SQL engine: placeholder formatting, execution, result cursors and CRUD helpers.
"""

from .cursor import ResultCursor
from .database import Database
from .executor import PreparedStatement, SqlExecutor, statement_key
from .formatter import FormattedStatement, PlaceholderFormatter
from .statements import split_statements

__all__ = [
    "Database",
    "FormattedStatement",
    "PlaceholderFormatter",
    "PreparedStatement",
    "ResultCursor",
    "SqlExecutor",
    "split_statements",
    "statement_key",
]
