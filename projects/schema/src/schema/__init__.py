"""SQL schema parsing for ERD Pets."""

from schema.errors import ParseWarning, ResolutionError, StructuralError, WarningKind
from schema.main import ParseResult, parse_sql
from schema.tokenizer import Token, TokenStream, TokenType, tokenize
from schema.types import Column, ForeignKey, Schema, Table, qualify

__all__ = [
    "Column",
    "ForeignKey",
    "ParseResult",
    "ParseWarning",
    "ResolutionError",
    "Schema",
    "StructuralError",
    "Table",
    "Token",
    "TokenStream",
    "TokenType",
    "WarningKind",
    "parse_sql",
    "qualify",
    "tokenize",
]
