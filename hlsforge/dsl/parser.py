"""
Parser for the layer DSL

Source lines are tokenized one at a time; lines that open a
``model.add(`` statement are collected (across lines while parentheses
remain open) and parsed with Lark into AST nodes. Every other line is
skipped silently. Syntax errors are recorded as diagnostics and parsing
continues with the next statement.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedInput, VisitError

from .ast_nodes import (
    AddStatement,
    Identifier,
    Keyword,
    LayerCall,
    Literal,
    SourceFile,
    TupleLiteral,
)
from .errors import (
    DiagnosticCollector,
    DSLError,
    DSLSourceError,
    DSLSyntaxError,
    SourceLocation,
)
from .grammar import GRAMMAR
from .tokenizer import is_layer_statement, paren_balance, strip_quotes, tokenize_line


logger = logging.getLogger(__name__)


class DSLTransformer(Transformer):
    """Transforms Lark parse tree into typed AST nodes."""

    def __init__(self, source_file: Optional[str] = None, line_offset: int = 0):
        super().__init__()
        self.source_file = source_file
        self.line_offset = line_offset

    def _loc(self, meta) -> Optional[SourceLocation]:
        """Create source location from Lark meta."""
        if meta is None or getattr(meta, "empty", True):
            return None
        end_line = getattr(meta, "end_line", None)
        return SourceLocation(
            file=self.source_file,
            line=getattr(meta, "line", 0) + self.line_offset,
            column=getattr(meta, "column", 0),
            end_line=end_line + self.line_offset if end_line is not None else None,
            end_column=getattr(meta, "end_column", None),
        )

    # =========================================================================
    # Statements
    # =========================================================================

    def start(self, items) -> List[AddStatement]:
        return list(items)

    @v_args(meta=True)
    def statement(self, meta, items) -> AddStatement:
        target, method, call = items
        if str(target) != "model" or str(method) != "add":
            raise DSLSyntaxError(
                f"expected 'model.add(...)', found '{target}.{method}(...)'",
                self._loc(meta),
                hint="Write one model.add(...) statement per line",
            )
        return AddStatement(call=call, location=self._loc(meta))

    @v_args(meta=True)
    def call(self, meta, items) -> LayerCall:
        constructor = items[0]
        arguments = items[1] if len(items) > 1 and items[1] is not None else []

        args, kwargs = [], []
        for argument in arguments:
            if isinstance(argument, Keyword):
                kwargs.append(argument)
            elif kwargs:
                raise DSLSyntaxError(
                    "positional argument follows keyword argument",
                    argument.location or self._loc(meta),
                )
            else:
                args.append(argument)

        return LayerCall(
            constructor=constructor,
            args=args,
            kwargs=kwargs,
            location=self._loc(meta),
        )

    def dotted_name(self, items) -> Tuple[str, ...]:
        return tuple(str(item) for item in items)

    def arguments(self, items):
        return list(items)

    @v_args(meta=True)
    def keyword_argument(self, meta, items) -> Keyword:
        return Keyword(name=str(items[0]), value=items[1], location=self._loc(meta))

    def positional_argument(self, items):
        return items[0]

    # =========================================================================
    # Values
    # =========================================================================

    @v_args(meta=True)
    def int_value(self, meta, items) -> Literal:
        return Literal(int(items[0]), location=self._loc(meta))

    @v_args(meta=True)
    def float_value(self, meta, items) -> Literal:
        return Literal(float(items[0]), location=self._loc(meta))

    @v_args(meta=True)
    def string_value(self, meta, items) -> Literal:
        return Literal(strip_quotes(str(items[0])), location=self._loc(meta))

    @v_args(meta=True)
    def name_value(self, meta, items) -> Identifier:
        return Identifier(str(items[0]), location=self._loc(meta))

    @v_args(meta=True)
    def tuple_value(self, meta, items) -> TupleLiteral:
        return TupleLiteral([item for item in items if item is not None], location=self._loc(meta))


class LayerDSLParser:
    """Main parser class for the layer DSL."""

    def __init__(self):
        self._parser = Lark(
            GRAMMAR,
            parser="lalr",
            propagate_positions=True,
        )

    def parse(
        self,
        source: Union[str, List[str]],
        source_file: Optional[str] = None,
        diagnostics: Optional[DiagnosticCollector] = None,
    ) -> SourceFile:
        """Parse DSL source into a list of ``model.add`` statements.

        Args:
            source: DSL source as one string or as a list of lines
            source_file: Optional source file path for error messages
            diagnostics: Collector receiving syntax errors; a fresh one is used if omitted

        Returns:
            SourceFile with the statements that parsed successfully
        """
        diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        lines = source.splitlines() if isinstance(source, str) else list(source)

        result = SourceFile(source_file=source_file)
        for first_line, text in self._split_statements(lines, result):
            try:
                statements = self.parse_statement(text, source_file, first_line - 1)
            except DSLError as e:
                diagnostics.error(e)
                continue
            for statement in statements:
                statement.text = text.strip()
                result.statements.append(statement)

        logger.debug(
            "parsed %d statement(s), skipped %d line(s)", len(result.statements), result.skipped_lines
        )
        return result

    def parse_statement(
        self,
        text: str,
        source_file: Optional[str] = None,
        line_offset: int = 0,
    ) -> List[AddStatement]:
        """Parse the text of one (possibly multi-line) ``model.add`` statement.

        Raises:
            DSLSyntaxError: If the text does not match the statement grammar
        """
        try:
            tree = self._parser.parse(text)
        except UnexpectedInput as e:
            location = SourceLocation(
                file=source_file,
                line=getattr(e, "line", 1) + line_offset,
                column=getattr(e, "column", 0),
            )
            raise DSLSyntaxError(
                f"cannot parse statement '{text.strip()}'",
                location,
                hint="Expected model.add(<Layer>(<name>=<value>, ...))",
            ) from e

        transformer = DSLTransformer(source_file=source_file, line_offset=line_offset)
        try:
            return transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, DSLError):
                raise e.orig_exc from e
            raise

    def _split_statements(self, lines: List[str], result: SourceFile) -> Iterator[Tuple[int, str]]:
        """Yield (first line number, text) for every ``model.add`` statement."""
        pending: List[str] = []
        first_line = 0
        balance = 0

        for number, line in enumerate(lines, start=1):
            tokens = tokenize_line(line, number)
            if not pending:
                if not is_layer_statement(tokens):
                    result.skipped_lines += 1
                    continue
                first_line = number
                balance = 0
            pending.append(line)
            balance += paren_balance(tokens)
            if balance <= 0:
                yield first_line, "\n".join(pending)
                pending = []

        # Unterminated statement; let the grammar report it
        if pending:
            yield first_line, "\n".join(pending)


_DEFAULT_PARSER: Optional[LayerDSLParser] = None


def _default_parser() -> LayerDSLParser:
    global _DEFAULT_PARSER
    if _DEFAULT_PARSER is None:
        _DEFAULT_PARSER = LayerDSLParser()
    return _DEFAULT_PARSER


def parse_source(
    source: Union[str, List[str]],
    source_file: Optional[str] = None,
    diagnostics: Optional[DiagnosticCollector] = None,
) -> SourceFile:
    """Parse DSL source code."""
    return _default_parser().parse(source, source_file, diagnostics)


def parse_file(path: Union[str, Path], diagnostics: Optional[DiagnosticCollector] = None) -> SourceFile:
    """Parse a DSL file.

    Raises:
        DSLSourceError: If the file cannot be read
    """
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DSLSourceError(
            f"cannot read source file '{path}': {e}",
            hint="Check the keras-source-file option",
        ) from e
    return parse_source(source, str(path), diagnostics)
