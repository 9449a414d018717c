"""
Expression and statement nodes produced by the parser.

Nodes are immutable and compare and hash by identity (eq=False): the
resolver keys its scope distances on the exact node, so two identical-looking
expressions at different places in the source must stay distinct.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

from lox.lox_tokens import Token


# =================================================================
# Expressions
# =================================================================

@dataclass(frozen=True, eq=False)
class Expr:
    pass


@dataclass(frozen=True, eq=False)
class Literal(Expr):
    value: Any


@dataclass(frozen=True, eq=False)
class Variable(Expr):
    name: Token


@dataclass(frozen=True, eq=False)
class Assign(Expr):
    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Logical(Expr):
    """Short-circuiting `and` / `or`."""
    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Unary(Expr):
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Grouping(Expr):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Call(Expr):
    callee: Expr
    paren: Token  # closing paren, used to locate runtime errors
    arguments: List[Expr]


@dataclass(frozen=True, eq=False)
class Get(Expr):
    object: Expr
    name: Token


@dataclass(frozen=True, eq=False)
class Set(Expr):
    object: Expr
    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class This(Expr):
    keyword: Token


@dataclass(frozen=True, eq=False)
class Super(Expr):
    keyword: Token
    method: Token


# =================================================================
# Statements
# =================================================================

@dataclass(frozen=True, eq=False)
class Stmt:
    pass


@dataclass(frozen=True, eq=False)
class Block(Stmt):
    statements: List[Stmt]


@dataclass(frozen=True, eq=False)
class Expression(Stmt):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Print(Stmt):
    expression: Expr


@dataclass(frozen=True, eq=False)
class Var(Stmt):
    name: Token
    initializer: Optional[Expr]


@dataclass(frozen=True, eq=False)
class If(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt]


@dataclass(frozen=True, eq=False)
class While(Stmt):
    condition: Expr
    body: Stmt


@dataclass(frozen=True, eq=False)
class Function(Stmt):
    name: Token
    params: List[Token]
    body: List[Stmt]


@dataclass(frozen=True, eq=False)
class Return(Stmt):
    keyword: Token
    value: Optional[Expr]


@dataclass(frozen=True, eq=False)
class Class(Stmt):
    name: Token
    superclass: Optional[Variable]
    methods: List[Function]
