"""Thin wrapper over the tree-sitter TypeScript grammar."""

from __future__ import annotations

from dataclasses import dataclass

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())


@dataclass(frozen=True)
class SyntaxIssue:
    """First syntax problem in a tree, with 1-based coordinates."""

    line: int
    column: int
    message: str


def parse(source: str) -> Tree:
    """Parse *source* as TypeScript. Never raises; see :func:`first_error`."""
    parser = Parser(TYPESCRIPT)
    return parser.parse(source.encode("utf-8"))


def first_error(root: Node) -> SyntaxIssue | None:
    """Locate the first ``ERROR`` or missing node in document order."""
    if not root.has_error:
        return None
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            line, column = position(node)
            return SyntaxIssue(line, column, f"missing '{node.type}'")
        if node.type == "ERROR":
            line, column = position(node)
            snippet = text(node).splitlines()[0][:40] if node.text else ""
            return SyntaxIssue(line, column, f"unexpected syntax near '{snippet}'")
        if node.has_error:
            stack.extend(reversed(node.children))
    return SyntaxIssue(1, 1, "invalid syntax")


def named(node: Node) -> list[Node]:
    """Named children with comments filtered out."""
    return [child for child in node.named_children if child.type != "comment"]


def text(node: Node) -> str:
    raw = node.text
    return raw.decode("utf-8") if raw is not None else ""


def position(node: Node) -> tuple[int, int]:
    line, column = node.start_point
    return line + 1, column + 1
