"""Tree scanner — walks a tree-sitter Rust syntax tree and records panic sites.

Context that depends on the enclosing function travels down the walk as an
immutable :class:`ScanContext`, so leaving a function restores the outer
context without any bookkeeping. Test status belongs to the innermost
function only; the extern ABI flag sticks once set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

import tree_sitter_rust
from tree_sitter import Language, Node, Parser

from panicaudit.scanner.models import PanicClass, Severity, Vulnerability
from panicaudit.scanner.rules import (
    AMPLIFICATION_LABEL,
    classify_panic,
    is_false_positive,
    is_panic_amplification,
    normalize,
)
from panicaudit.scanner.source import SourceTracker

logger = logging.getLogger(__name__)

RUST_LANGUAGE = Language(tree_sitter_rust.language())

_ASSUMPTION_METHODS = frozenset({"unwrap", "expect", "unwrap_unchecked"})
_AMPLIFYING_METHODS = frozenset({"unwrap", "expect"})
_IMPLICIT_MACROS = frozenset({"todo", "unimplemented"})
_ASSERT_MACROS = frozenset({"assert", "assert_eq", "assert_ne", "debug_assert"})
_TEST_ATTRIBUTES = frozenset({"test", "bench"})
_ATTRIBUTE_RUN = frozenset({"attribute_item", "line_comment", "block_comment"})

_PROCESS_EXIT_PATH = "std::process"
_PROCESS_EXIT_LABEL = "process::exit()"


@dataclass(frozen=True)
class ScanContext:
    """Lexical context of the node being visited."""

    in_test_code: bool = False
    in_extern_fn: bool = False

    def enter_function(self, is_test: bool, is_extern: bool) -> ScanContext:
        return ScanContext(
            in_test_code=is_test,
            in_extern_fn=self.in_extern_fn or is_extern,
        )


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def in_tests_dir(path: str) -> bool:
    """Check if a relative path lies under a ``tests`` directory."""
    return "tests" in PurePosixPath(path).parts[:-1]


def attribute_name(item: Node) -> str:
    """Name of a single-identifier attribute (``#[test]`` -> ``test``)."""
    for child in item.named_children:
        if child.type == "attribute" and child.named_children:
            path = child.named_children[0]
            if path.type == "identifier":
                return node_text(path)
    return ""


def is_test_function(node: Node) -> bool:
    """Check the attributes in front of a ``function_item`` for test/bench."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type in _ATTRIBUTE_RUN:
        if sibling.type == "attribute_item" and attribute_name(sibling) in _TEST_ATTRIBUTES:
            return True
        sibling = sibling.prev_named_sibling
    return False


def is_extern_function(node: Node) -> bool:
    """Check if a ``function_item`` declares a named ABI (``extern "C" fn``)."""
    for child in node.children:
        if child.type != "function_modifiers":
            continue
        for modifier in child.children:
            if modifier.type == "extern_modifier" and any(
                c.type == "string_literal" for c in modifier.children
            ):
                return True
    return False


def method_name(function: Node | None) -> str:
    """Method name of a call's ``function`` node, or "" for plain calls."""
    if function is not None and function.type == "generic_function":
        function = function.child_by_field_name("function")
    if function is None or function.type != "field_expression":
        return ""
    return node_text(function.child_by_field_name("field"))


def macro_name(node: Node) -> str:
    """Final path segment of a ``macro_invocation``."""
    path = node.child_by_field_name("macro")
    if path is not None and path.type == "scoped_identifier":
        path = path.child_by_field_name("name")
    return node_text(path)


class TreeScanner:
    """Accumulates panic findings over any number of Rust files.

    Usage:
        scanner = TreeScanner()
        scanner.scan_file("src/lib.rs", text)
        findings = scanner.vulnerabilities
    """

    def __init__(self) -> None:
        self.parser = Parser(RUST_LANGUAGE)
        self.tracker = SourceTracker()
        self.vulnerabilities: list[Vulnerability] = []
        self._in_tests_dir = False

    @property
    def current_file(self) -> str:
        return self.tracker.path

    def scan_file(self, path: str, source: str) -> bool:
        """Parse and visit one file.

        Returns False (recording nothing) when the text does not parse.
        """
        self.tracker.update(path, source)
        self._in_tests_dir = in_tests_dir(path)

        tree = self.parser.parse(source.encode("utf-8", errors="replace"))
        if tree.root_node.has_error:
            logger.debug("Skipping %s: source does not parse", path)
            return False

        self.visit(tree.root_node)
        return True

    def visit(self, root: Node, context: ScanContext | None = None) -> None:
        """Depth-first, pre-order walk dispatching to ``visit_<node type>``."""
        stack = [(root, context or ScanContext())]
        while stack:
            node, ctx = stack.pop()
            visitor = getattr(self, f"visit_{node.type}", None)
            if visitor is not None:
                ctx = visitor(node, ctx) or ctx
            stack.extend((child, ctx) for child in reversed(node.children))

    # ------------------------------------------------------------------
    # Node visitors
    # ------------------------------------------------------------------

    def visit_function_item(self, node: Node, ctx: ScanContext) -> ScanContext:
        return ctx.enter_function(is_test_function(node), is_extern_function(node))

    def visit_call_expression(self, node: Node, ctx: ScanContext) -> None:
        if self._suppressed(ctx):
            return

        function = node.child_by_field_name("function")
        method = method_name(function)

        if method in _ASSUMPTION_METHODS:
            code = node_text(node)
            line = self.tracker.find_line(code)
            self.check_assumption_panic(code, line)
            if method in _AMPLIFYING_METHODS:
                self.check_panic_amplification(code, line)
        elif (
            function is not None
            and function.type == "scoped_identifier"
            and normalize(node_text(function)).endswith("process::exit")
        ):
            self._record(
                node,
                Severity.CRITICAL,
                PanicClass.PROCESS_KILLING,
                _PROCESS_EXIT_LABEL,
            )

    def visit_index_expression(self, node: Node, ctx: ScanContext) -> None:
        if self._suppressed(ctx):
            return
        self._record(
            node,
            Severity.MEDIUM,
            PanicClass.IMPLICIT_PANIC,
            "Array/Slice Indexing",
        )

    def visit_macro_invocation(self, node: Node, ctx: ScanContext) -> None:
        if self._suppressed(ctx):
            return

        name = macro_name(node)
        if name in _IMPLICIT_MACROS:
            self._record(node, Severity.CRITICAL, PanicClass.IMPLICIT_PANIC, f"{name}!()")
        elif name in _ASSERT_MACROS:
            self._record(
                node, Severity.MEDIUM, PanicClass.ASSERTION_FAILURE, f"{name}!()"
            )
        elif name == "exit" and _PROCESS_EXIT_PATH in normalize(node_text(node)):
            self._record(
                node,
                Severity.CRITICAL,
                PanicClass.PROCESS_KILLING,
                _PROCESS_EXIT_LABEL,
            )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_assumption_panic(self, code: str, line: int) -> None:
        if is_false_positive(code):
            return
        severity, panic_class, pattern = classify_panic(code)
        self._append(code, line, severity, panic_class, pattern)

    def check_panic_amplification(self, code: str, line: int) -> None:
        if is_panic_amplification(code):
            self._append(
                code,
                line,
                Severity.CRITICAL,
                PanicClass.PANIC_AMPLIFICATION,
                AMPLIFICATION_LABEL,
            )

    def _suppressed(self, ctx: ScanContext) -> bool:
        return ctx.in_test_code or self._in_tests_dir

    def _record(
        self,
        node: Node,
        severity: Severity,
        panic_class: PanicClass,
        pattern: str,
    ) -> None:
        code = node_text(node)
        self._append(code, self.tracker.find_line(code), severity, panic_class, pattern)

    def _append(
        self,
        code: str,
        line: int,
        severity: Severity,
        panic_class: PanicClass,
        pattern: str,
    ) -> None:
        self.vulnerabilities.append(
            Vulnerability.create(
                file=self.current_file,
                line=line,
                severity=severity,
                panic_class=panic_class,
                pattern=pattern,
                code=code,
            )
        )
