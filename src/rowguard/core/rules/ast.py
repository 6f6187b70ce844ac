"""Abstract Syntax Tree nodes for predicate expressions."""

from dataclasses import dataclass
from typing import Any

@dataclass
class Node:
    """Base class for all AST nodes."""
    pass

@dataclass
class Literal(Node):
    """Represents a literal value (string, number, boolean, null)."""
    value: Any

@dataclass
class Variable(Node):
    """Represents a variable access (e.g., auth.id, new.updated_at)."""
    name: str

@dataclass
class BinaryOp(Node):
    """Represents a binary operation (e.g., a == b)."""
    left: Node
    operator: str
    right: Node

@dataclass
class UnaryOp(Node):
    """Represents a unary operation (e.g., not a)."""
    operator: str
    operand: Node

@dataclass
class FunctionCall(Node):
    """Represents a function call (e.g., now(), pg_catalog.lower(name))."""
    name: str
    arguments: list[Node]

@dataclass
class ListLiteral(Node):
    """Represents a list literal (e.g., ['admin', 'editor'])."""
    items: list[Node]


def walk(node: Node):
    """Yield every node of a tree, parents before children."""
    yield node
    if isinstance(node, BinaryOp):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, UnaryOp):
        yield from walk(node.operand)
    elif isinstance(node, FunctionCall):
        for arg in node.arguments:
            yield from walk(arg)
    elif isinstance(node, ListLiteral):
        for item in node.items:
            yield from walk(item)
