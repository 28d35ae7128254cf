"""MySQL is the canonical dialect: statements go through unchanged."""

from polydb.dialects.base import DialectConverter


class MySQLConverter(DialectConverter):
    pass
