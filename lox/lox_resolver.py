"""
Static scope resolution for Lox programs.

A single pass over the statements that works out, for every variable
reference, how many scopes separate it from its declaration, and records
that distance on the Evaluator. It also reports the semantic errors that can
be found without running anything. The scopes pushed here must mirror the
Environments the Evaluator creates at runtime exactly, or lookups land in
the wrong place.
"""
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Set as PySet, TYPE_CHECKING

from lox.lox_tokens import Token
from lox.lox_ast import (
    Expr, Stmt, Literal, Variable, Assign, Binary, Logical, Unary, Grouping,
    Call, Get, Set, This, Super,
    Block, Expression, Print, Var, If, While, Function, Return, Class
)

if TYPE_CHECKING:
    from lox.lox_interpreter import Evaluator

ResolveErrorFn = Callable[[Token, str], None]


class FunctionType(Enum):
    NONE = auto()
    FUNCTION = auto()
    INITIALIZER = auto()
    METHOD = auto()


class ClassType(Enum):
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


class Resolver:
    def __init__(self, evaluator: 'Evaluator', on_error: Optional[ResolveErrorFn] = None):
        self.evaluator = evaluator
        self.on_error = on_error
        # Each scope maps a name to False (declared) or True (defined).
        self.scopes: List[Dict[str, bool]] = []
        self.current_function = FunctionType.NONE
        self.current_class = ClassType.NONE
        # Top-level names of the program; the global scope itself is not tracked.
        self.global_names: PySet[str] = set()
        self.had_error = False

    def resolve(self, statements: List[Stmt]):
        if not self.scopes:
            # Globals are late-bound, so every top-level name counts as
            # declared wherever it appears in the program.
            self.global_names.update(
                stmt.name.lexeme for stmt in statements if isinstance(stmt, (Var, Function, Class))
            )
        for stmt in statements:
            self._resolve_stmt(stmt)

    def _error(self, token: Token, message: str):
        self.had_error = True
        if self.on_error is not None:
            self.on_error(token, message)

    # --- Statements ---

    def _resolve_stmt(self, stmt: Stmt):
        match stmt:
            case Block(statements=statements):
                self._begin_scope()
                self.resolve(statements)
                self._end_scope()
            case Var(name=name, initializer=initializer):
                self._declare(name)
                if initializer is not None:
                    self._resolve_expr(initializer)
                self._define(name)
            case Function(name=name):
                # Defined before the body so the function can call itself.
                self._declare(name)
                self._define(name)
                self._resolve_function(stmt, FunctionType.FUNCTION)
            case Class():
                self._resolve_class(stmt)
            case Expression(expression=expr) | Print(expression=expr):
                self._resolve_expr(expr)
            case If(condition=condition, then_branch=then_branch, else_branch=else_branch):
                self._resolve_expr(condition)
                self._resolve_stmt(then_branch)
                if else_branch is not None:
                    self._resolve_stmt(else_branch)
            case While(condition=condition, body=body):
                self._resolve_expr(condition)
                self._resolve_stmt(body)
            case Return(keyword=keyword, value=value):
                if self.current_function == FunctionType.NONE:
                    self._error(keyword, "Can't return from top-level code.")
                if value is not None:
                    if self.current_function == FunctionType.INITIALIZER:
                        self._error(keyword, "Can't return a value from an initializer.")
                    self._resolve_expr(value)
            case _:
                raise TypeError(f"unknown statement node: {type(stmt).__name__}")

    def _resolve_class(self, stmt: Class):
        enclosing_class = self.current_class
        self.current_class = ClassType.CLASS

        self._declare(stmt.name)
        self._define(stmt.name)

        if stmt.superclass is not None:
            if stmt.name.lexeme == stmt.superclass.name.lexeme:
                self._error(stmt.superclass.name, "A class can't inherit from itself.")
            else:
                self.current_class = ClassType.SUBCLASS
                self._resolve_expr(stmt.superclass)
            self._begin_scope()
            self.scopes[-1]["super"] = True

        self._begin_scope()
        self.scopes[-1]["this"] = True

        for method in stmt.methods:
            kind = FunctionType.INITIALIZER if method.name.lexeme == "init" else FunctionType.METHOD
            self._resolve_function(method, kind)

        self._end_scope()
        if stmt.superclass is not None:
            self._end_scope()

        self.current_class = enclosing_class

    def _resolve_function(self, function: Function, kind: FunctionType):
        enclosing_function = self.current_function
        self.current_function = kind

        self._begin_scope()
        for param in function.params:
            self._declare(param)
            self._define(param)
        self.resolve(function.body)
        self._end_scope()

        self.current_function = enclosing_function

    # --- Expressions ---

    def _resolve_expr(self, expr: Expr):
        match expr:
            case Variable(name=name):
                if self.scopes and self.scopes[-1].get(name.lexeme) is False:
                    self._resolve_in_own_initializer(expr, name)
                else:
                    self._resolve_local(expr, name)
            case Assign(name=name, value=value):
                self._resolve_expr(value)
                self._resolve_local(expr, name)
            case Binary(left=left, right=right) | Logical(left=left, right=right):
                self._resolve_expr(left)
                self._resolve_expr(right)
            case Unary(right=right):
                self._resolve_expr(right)
            case Grouping(expression=inner):
                self._resolve_expr(inner)
            case Call(callee=callee, arguments=arguments):
                self._resolve_expr(callee)
                for argument in arguments:
                    self._resolve_expr(argument)
            case Get(object=obj):
                self._resolve_expr(obj)
            case Set(object=obj, value=value):
                self._resolve_expr(value)
                self._resolve_expr(obj)
            case This(keyword=keyword):
                if self.current_class == ClassType.NONE:
                    self._error(keyword, "Can't use 'this' outside of a class.")
                    return
                self._resolve_local(expr, keyword)
            case Super(keyword=keyword):
                if self.current_class == ClassType.NONE:
                    self._error(keyword, "Can't use 'super' outside of a class.")
                elif self.current_class != ClassType.SUBCLASS:
                    self._error(keyword, "Can't use 'super' in a class with no superclass.")
                self._resolve_local(expr, keyword)
            case Literal():
                pass
            case _:
                raise TypeError(f"unknown expression node: {type(expr).__name__}")

    def _resolve_local(self, expr: Expr, name: Token, skip: int = 0):
        """Records the hop count to the innermost scope binding name.

        skip ignores that many innermost scopes. Not found means global, which
        the Evaluator looks up dynamically.
        """
        for i in range(len(self.scopes) - 1 - skip, -1, -1):
            if name.lexeme in self.scopes[i]:
                self.evaluator.resolve(expr, len(self.scopes) - 1 - i)
                return

    def _resolve_in_own_initializer(self, expr: Variable, name: Token):
        # The variable being initialized is not visible yet; the reference
        # means whatever the name bound before this declaration.
        for scope in self.scopes[:-1]:
            if name.lexeme in scope:
                self._resolve_local(expr, name, skip=1)
                return
        if name.lexeme in self.global_names or name.lexeme in self.evaluator.globals:
            return
        self._error(name, "Can't read local variable in its own initializer.")

    # --- Scopes ---

    def _begin_scope(self):
        self.scopes.append({})

    def _end_scope(self):
        self.scopes.pop()

    def _declare(self, name: Token):
        if not self.scopes:
            self.global_names.add(name.lexeme)
            return
        scope = self.scopes[-1]
        if name.lexeme in scope:
            self._error(name, "Already a variable with this name in this scope.")
        scope[name.lexeme] = False

    def _define(self, name: Token):
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme] = True
