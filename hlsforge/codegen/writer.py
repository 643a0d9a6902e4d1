from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator, List


class CodeWriter:
    """Accumulates tab-indented lines of C++ source."""

    def __init__(self, indent_level: int = 0):
        self.lines: List[str] = []
        self.indent_level = indent_level

    def _indent(self, text: str) -> str:
        return "\t" * self.indent_level + text

    def line(self, text: str = "") -> "CodeWriter":
        self.lines.append(self._indent(text) if text else "")
        return self

    def extend(self, lines: Iterable[str]) -> "CodeWriter":
        for text in lines:
            self.line(text)
        return self

    def blank(self, count: int = 1) -> "CodeWriter":
        self.lines.extend([""] * count)
        return self

    @contextmanager
    def indented(self, levels: int = 1) -> Iterator["CodeWriter"]:
        self.indent_level += levels
        try:
            yield self
        finally:
            self.indent_level -= levels

    @contextmanager
    def block(self, header: str = "") -> Iterator["CodeWriter"]:
        """``header`` (optional) and a braced, indented body."""
        if header:
            self.line(header)
        self.line("{")
        with self.indented():
            yield self
        self.line("}")

    @contextmanager
    def nested(self, headers: Iterable[str]) -> Iterator["CodeWriter"]:
        """Emit each header one level deeper than the previous one."""
        with ExitStack() as stack:
            for header in headers:
                self.line(header)
                stack.enter_context(self.indented())
            yield self

    def render(self) -> str:
        return "\n".join(self.lines) + "\n"
