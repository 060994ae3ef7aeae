"""Two-pass parser turning a PostgreSQL schema script into a Schema.

The first pass walks the token stream and collects raw statements; anything it
cannot understand is skipped up to the next semicolon and reported as a syntax
warning. The second pass builds tables, applies primary keys and resolves
foreign keys once every table is known, so statement order does not matter.
"""

from logging import getLogger
from typing import NamedTuple

from schema.errors import ParseWarning, ResolutionError, WarningKind
from schema.tokenizer import SQLSyntaxError, Token, TokenStream, TokenType, tokenize
from schema.types import Column, ForeignKey, Schema, Table, qualify

logger = getLogger(__name__)

# Words that end a column type and start its modifiers
TYPE_END_KEYWORDS = frozenset(
    {
        "NOT",
        "NULL",
        "DEFAULT",
        "GENERATED",
        "CONSTRAINT",
        "PRIMARY",
        "REFERENCES",
        "UNIQUE",
        "CHECK",
        "COLLATE",
    },
)

# Words that continue a multi-word type such as "timestamp with time zone"
TYPE_CONTINUATION_KEYWORDS = frozenset(
    {"WITH", "WITHOUT", "TIME", "ZONE", "VARYING", "PRECISION"},
)

# Elements of a CREATE TABLE body that are not column definitions
TABLE_CONSTRAINT_KEYWORDS = frozenset(
    {"CONSTRAINT", "PRIMARY", "FOREIGN", "UNIQUE", "CHECK", "EXCLUDE", "LIKE"},
)


class ParseResult(NamedTuple):
    """Best-effort schema plus everything that was skipped on the way."""

    schema: Schema
    warnings: list[ParseWarning]


class CreateTable(NamedTuple):
    """Raw CREATE TABLE statement."""

    table: Table
    line: int


class AddPrimaryKey(NamedTuple):
    """Raw ALTER TABLE ... ADD PRIMARY KEY action."""

    table: str
    columns: tuple[str, ...]
    line: int


class AddForeignKey(NamedTuple):
    """Raw ALTER TABLE ... ADD FOREIGN KEY action, target columns optional."""

    table: str
    columns: tuple[str, ...]
    target_table: str
    target_columns: tuple[str, ...]
    line: int


type Statement = CreateTable | AddPrimaryKey | AddForeignKey


def _parse_identifier(stream: TokenStream) -> str:
    """Parse an identifier; bare words fold to lower case, quoted ones do not."""
    token = stream.peek()
    if token.type is TokenType.WORD:
        stream.next()
        return token.value.lower()
    if token.type is TokenType.QUOTED:
        stream.next()
        return token.value
    found = f'"{token.value}"' if token.value else "end of input"
    msg = f"Expected identifier but found {found}"
    raise SQLSyntaxError(msg, token.line)


def _parse_qualified_name(stream: TokenStream) -> tuple[str, str]:
    """Parse ``schema.table``; bare and three-part names are rejected."""
    line = stream.line()
    first = _parse_identifier(stream)
    if not stream.match(TokenType.PUNCTUATION, "."):
        msg = f'Table name "{first}" must be qualified as schema.table'
        raise SQLSyntaxError(msg, line)
    second = _parse_identifier(stream)
    if stream.is_(TokenType.PUNCTUATION, "."):
        msg = f'Table name "{first}.{second}" has too many parts'
        raise SQLSyntaxError(msg, line)
    if "." in first:
        msg = f'Schema name "{first}" cannot contain "."'
        raise SQLSyntaxError(msg, line)
    return first, second


def _parse_name_list(stream: TokenStream) -> tuple[str, ...]:
    """Parse a parenthesised, comma separated list of column names."""
    stream.expect(TokenType.PUNCTUATION, "(")
    names = [_parse_identifier(stream)]
    while stream.match(TokenType.PUNCTUATION, ","):
        names.append(_parse_identifier(stream))
    stream.expect(TokenType.PUNCTUATION, ")")
    return tuple(names)


def _consume_element(stream: TokenStream) -> list[Token]:
    """Consume one CREATE TABLE element up to its ending comma or parenthesis.

    The terminator is left in the stream. Returns the tokens found outside any
    nested parentheses, which is all the modifier checks need.
    """
    top_level: list[Token] = []
    depth = 0
    while not stream.at_end():
        token = stream.peek()
        if token.type is TokenType.PUNCTUATION:
            if token.value == ";":
                msg = "Missing ) before end of statement"
                raise SQLSyntaxError(msg, token.line)
            if token.value == "," and depth == 0:
                break
            if token.value == ")":
                if depth == 0:
                    break
                depth -= 1
            elif token.value == "(":
                depth += 1
        if depth == 0:
            top_level.append(token)
        stream.next()
    return top_level


def _parse_arguments(stream: TokenStream) -> str:
    """Parse a balanced argument list such as ``(10, 2)`` into ``(10,2)``."""
    parts: list[str] = []
    depth = 0
    while not stream.at_end():
        token = stream.next()
        parts.append(token.value.lower() if token.type is TokenType.WORD else token.value)
        if token.type is TokenType.PUNCTUATION and token.value == "(":
            depth += 1
        elif token.type is TokenType.PUNCTUATION and token.value == ")":
            depth -= 1
            if depth == 0:
                break
    return "".join(parts)


def _parse_column_type(stream: TokenStream, column_name: str) -> str:
    """Parse the raw type text of a column."""
    token = stream.peek()
    if token.type is TokenType.QUOTED:
        text = token.value
    elif token.type is TokenType.WORD and token.keyword not in TYPE_END_KEYWORDS:
        text = token.value.lower()
    else:
        msg = f'Missing type for column "{column_name}"'
        raise SQLSyntaxError(msg, token.line)
    stream.next()

    # Schema-qualified user types, e.g. public.citext
    while stream.match(TokenType.PUNCTUATION, "."):
        text += "." + _parse_identifier(stream)

    while True:
        if stream.is_(TokenType.PUNCTUATION, "("):
            text += _parse_arguments(stream)
        elif stream.match(TokenType.PUNCTUATION, "["):
            stream.match(TokenType.NUMBER)
            stream.expect(TokenType.PUNCTUATION, "]")
            text += "[]"
        elif word := stream.match_keyword(*TYPE_CONTINUATION_KEYWORDS):
            text += " " + word.value.lower()
        else:
            return text


def _parse_column(stream: TokenStream) -> Column:
    """Parse ``name type [NOT NULL] [DEFAULT expr] ...``."""
    name = _parse_identifier(stream)
    type_text = _parse_column_type(stream, name)
    modifiers = _consume_element(stream)
    keywords = [token.keyword for token in modifiers]
    not_null = any(
        first == "NOT" and second == "NULL"
        for first, second in zip(keywords, keywords[1:], strict=False)
    )
    return Column(
        name=name,
        type=type_text,
        nullable=not not_null,
        has_default="DEFAULT" in keywords,
    )


def _skip_statement(stream: TokenStream) -> None:
    """Advance past the next semicolon or to the end of input."""
    while not stream.at_end():
        token = stream.next()
        if token.type is TokenType.PUNCTUATION and token.value == ";":
            return


def _skip_action(stream: TokenStream) -> None:
    """Advance to the comma or semicolon ending an ALTER TABLE action."""
    depth = 0
    while not stream.at_end():
        token = stream.peek()
        if token.type is TokenType.PUNCTUATION:
            if token.value == ";" or (token.value == "," and depth == 0):
                return
            if token.value == "(":
                depth += 1
            elif token.value == ")":
                depth = max(depth - 1, 0)
        stream.next()


def _parse_create_table(stream: TokenStream, line: int) -> CreateTable:
    """Parse the remainder of a statement after ``CREATE TABLE``."""
    if stream.match_keyword("IF"):
        stream.expect_keyword("NOT")
        stream.expect_keyword("EXISTS")
    schema_name, table_name = _parse_qualified_name(stream)
    stream.expect(TokenType.PUNCTUATION, "(")

    columns: list[Column] = []
    while not stream.match(TokenType.PUNCTUATION, ")"):
        if stream.at_end():
            msg = f'Missing ) in table "{qualify(schema_name, table_name)}"'
            raise SQLSyntaxError(msg, line)
        if stream.match(TokenType.PUNCTUATION, ","):
            continue
        if stream.is_keyword(*TABLE_CONSTRAINT_KEYWORDS):
            _consume_element(stream)
        else:
            columns.append(_parse_column(stream))

    # Storage options, inheritance, partitioning and so on
    _skip_statement(stream)
    return CreateTable(Table(schema_name, table_name, tuple(columns)), line)


def _parse_alter_table(stream: TokenStream, line: int) -> list[Statement]:
    """Parse the remainder of a statement after ``ALTER TABLE``."""
    if stream.match_keyword("IF"):
        stream.expect_keyword("EXISTS")
    stream.match_keyword("ONLY")
    table = qualify(*_parse_qualified_name(stream))

    statements: list[Statement] = []
    while True:
        if stream.match_keyword("ADD"):
            if stream.match_keyword("CONSTRAINT"):
                _parse_identifier(stream)
            if stream.match_keyword("PRIMARY"):
                stream.expect_keyword("KEY")
                statements.append(AddPrimaryKey(table, _parse_name_list(stream), line))
            elif stream.match_keyword("FOREIGN"):
                stream.expect_keyword("KEY")
                columns = _parse_name_list(stream)
                stream.expect_keyword("REFERENCES")
                target = qualify(*_parse_qualified_name(stream))
                target_columns = (
                    _parse_name_list(stream)
                    if stream.is_(TokenType.PUNCTUATION, "(")
                    else ()
                )
                statements.append(
                    AddForeignKey(table, columns, target, target_columns, line),
                )
        _skip_action(stream)
        if not stream.match(TokenType.PUNCTUATION, ","):
            break

    stream.match(TokenType.PUNCTUATION, ";")
    return statements


def _parse_statement(stream: TokenStream) -> list[Statement]:
    """Parse one statement, returning the raw statements it contributes."""
    line = stream.line()
    if stream.look_ahead(1).keyword == "TABLE":
        if stream.match_keyword("CREATE"):
            stream.next()
            return [_parse_create_table(stream, line)]
        if stream.match_keyword("ALTER"):
            stream.next()
            return _parse_alter_table(stream, line)
    _skip_statement(stream)
    return []


def collect_statements(
    stream: TokenStream,
    warnings: list[ParseWarning],
) -> list[Statement]:
    """First pass: gather raw statements, skipping and reporting bad ones."""
    statements: list[Statement] = []
    while not stream.at_end():
        line = stream.line()
        try:
            statements.extend(_parse_statement(stream))
        except SQLSyntaxError as err:
            warnings.append(ParseWarning(WarningKind.SYNTAX, err.message, line))
            _skip_statement(stream)
    return statements


def _apply_primary_key(table: Table, statement: AddPrimaryKey) -> tuple[Table, list[str]]:
    """Return the table with its primary key set and any unknown column names."""
    known = [name for name in statement.columns if table.column(name)]
    unknown = [name for name in statement.columns if not table.column(name)]
    return table._replace(primary_key=tuple(dict.fromkeys(known))), unknown


def resolve_foreign_key(
    statement: AddForeignKey,
    tables: dict[str, Table],
) -> list[ForeignKey]:
    """Resolve one raw foreign key against the complete table set.

    When the referenced columns are omitted they are taken from the target
    table's primary key, which must have exactly as many columns as the key.
    """
    source = tables.get(statement.table)
    if source is None:
        msg = f'Foreign key on unknown table "{statement.table}"'
        raise ResolutionError(msg)
    target = tables.get(statement.target_table)
    if target is None:
        msg = (
            f'Foreign key on "{statement.table}" references unknown table '
            f'"{statement.target_table}"'
        )
        raise ResolutionError(msg)

    target_columns = statement.target_columns
    if not target_columns:
        if not target.primary_key:
            msg = (
                f'Foreign key on "{statement.table}" omits the referenced column '
                f'but "{statement.target_table}" has no primary key'
            )
            raise ResolutionError(msg)
        target_columns = target.primary_key

    if len(target_columns) != len(statement.columns):
        msg = (
            f'Foreign key on "{statement.table}" has {len(statement.columns)} '
            f'column(s) but references {len(target_columns)} in '
            f'"{statement.target_table}"'
        )
        raise ResolutionError(msg)

    for table, names in ((source, statement.columns), (target, target_columns)):
        for name in names:
            if table.column(name) is None:
                msg = f'Column "{name}" not found in "{table.qualified_name}"'
                raise ResolutionError(msg)

    return [
        ForeignKey(source.qualified_name, source_column, target.qualified_name, target_column)
        for source_column, target_column in zip(
            statement.columns,
            target_columns,
            strict=True,
        )
    ]


def build_schema(statements: list[Statement], warnings: list[ParseWarning]) -> Schema:
    """Second pass: build tables, then apply keys once every table is known."""
    tables: dict[str, Table] = {}
    for statement in statements:
        if isinstance(statement, CreateTable):
            name = statement.table.qualified_name
            if name in tables:
                warnings.append(
                    ParseWarning(
                        WarningKind.SYNTAX,
                        f'Table "{name}" is declared more than once; '
                        "using the last declaration",
                        statement.line,
                    ),
                )
            tables[name] = statement.table

    for statement in statements:
        if not isinstance(statement, AddPrimaryKey):
            continue
        table = tables.get(statement.table)
        if table is None:
            warnings.append(
                ParseWarning(
                    WarningKind.RESOLUTION,
                    f'Primary key on unknown table "{statement.table}"',
                    statement.line,
                ),
            )
            continue
        tables[statement.table], unknown = _apply_primary_key(table, statement)
        warnings.extend(
            ParseWarning(
                WarningKind.RESOLUTION,
                f'Primary key column "{name}" not found in "{statement.table}"',
                statement.line,
            )
            for name in unknown
        )

    foreign_keys: list[ForeignKey] = []
    for statement in statements:
        if not isinstance(statement, AddForeignKey):
            continue
        try:
            foreign_keys.extend(resolve_foreign_key(statement, tables))
        except ResolutionError as err:
            warnings.append(ParseWarning(WarningKind.RESOLUTION, str(err), statement.line))

    return Schema(tables=tables, foreign_keys=tuple(foreign_keys))


def parse_sql(sql: str) -> ParseResult:
    """Parse a schema script into tables, primary keys and foreign keys.

    Never raises for malformed input: each statement that cannot be parsed or
    resolved is dropped and reported in ``ParseResult.warnings``.
    """
    warnings: list[ParseWarning] = []
    statements = collect_statements(TokenStream(tokenize(sql)), warnings)
    schema = build_schema(statements, warnings)
    logger.debug(
        "Parsed %d tables and %d foreign keys with %d warnings",
        len(schema),
        len(schema.foreign_keys),
        len(warnings),
    )
    return ParseResult(schema, warnings)
