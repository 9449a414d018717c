"""
The core Lox interpreter: a tree-walking Evaluator over resolved statements.
"""
import math
import os
import sys
from typing import Any, Callable, Dict, List, Optional

from lox.lox_tokens import Token, TokenType
from lox.lox_ast import (
    Expr, Stmt, Literal, Variable, Assign, Binary, Logical, Unary, Grouping,
    Call, Get, Set, This, Super,
    Block, Expression, Print, Var, If, While, Function, Return, Class
)
from lox.lox_datatypes import (
    Environment, LoxCallable, NativeFunction, LoxFunction, LoxClass, LoxInstance,
    LoxRuntimeError, ReturnValue, is_return
)
from lox.lox_printer import stringify


def is_truthy(value: Any) -> bool:
    """nil and false are falsy; everything else, 0 and "" included, is truthy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_number(value: Any) -> bool:
    # bool is a subclass of int, so rule it out first
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_equal(a: Any, b: Any) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def _divide(left: float, right: float) -> float:
    try:
        return left / right
    except ZeroDivisionError:
        # IEEE-754 semantics rather than a Python exception
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


class Evaluator:
    """The Lox execution engine."""

    def __init__(self, on_print: Optional[Callable[[str], None]] = None):
        self.globals = Environment()
        self.environment = self.globals
        # Scope distances keyed by expression node identity, filled in by the Resolver.
        self.locals: Dict[Expr, int] = {}
        self.side_effects: List[Dict[str, Any]] = []
        self.call_stack: List[Dict[str, Any]] = []
        self.on_print = on_print
        self.current_node = None

    # --- Setup and bookkeeping ---

    def define_native(self, name: str, fn: Callable[..., Any]):
        self.globals.define(name, NativeFunction(name, fn))

    def resolve(self, expr: Expr, depth: int):
        self.locals[expr] = depth

    def emit(self, text: str):
        self.side_effects.append({'topics': ['stdout'], 'message': text})
        if self.on_print is not None:
            self.on_print(text)

    def _push_frame(self, name, func, args, call_site: Token):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': call_site,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- Statements ---

    def interpret(self, statements: List[Stmt]):
        """Runs a resolved program. The first runtime error propagates to the caller."""
        self.environment = self.globals
        self.call_stack.clear()
        for stmt in statements:
            self.execute(stmt)

    def execute_block(self, statements: List[Stmt], environment: Environment) -> Optional[ReturnValue]:
        previous = self.environment
        try:
            self.environment = environment
            for stmt in statements:
                result = self.execute(stmt)
                if is_return(result):
                    return result
            return None
        finally:
            self.environment = previous

    def execute(self, stmt: Stmt) -> Optional[ReturnValue]:
        """Executes one statement; a ReturnValue means a `return` is unwinding."""
        self.current_node = stmt
        match stmt:
            case Expression(expression=expr):
                self.evaluate(expr)
            case Print(expression=expr):
                self.emit(stringify(self.evaluate(expr)))
            case Var(name=name, initializer=initializer):
                value = None
                if initializer is not None:
                    value = self.evaluate(initializer)
                self.environment.define(name.lexeme, value)
            case Block(statements=statements):
                return self.execute_block(statements, Environment(self.environment))
            case If(condition=condition, then_branch=then_branch, else_branch=else_branch):
                if is_truthy(self.evaluate(condition)):
                    return self.execute(then_branch)
                if else_branch is not None:
                    return self.execute(else_branch)
            case While(condition=condition, body=body):
                while is_truthy(self.evaluate(condition)):
                    result = self.execute(body)
                    if is_return(result):
                        return result
            case Function(name=name):
                self.environment.define(name.lexeme, LoxFunction(stmt, self.environment, False))
            case Return(value=value_expr):
                value = None
                if value_expr is not None:
                    value = self.evaluate(value_expr)
                return ReturnValue(value)
            case Class():
                self._execute_class(stmt)
            case _:
                raise TypeError(f"unknown statement node: {type(stmt).__name__}")
        return None

    def _execute_class(self, stmt: Class):
        superclass = None
        if stmt.superclass is not None:
            superclass = self.evaluate(stmt.superclass)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(stmt.superclass.name, "Superclass must be a class.")

        self.environment.define(stmt.name.lexeme, None)

        # Methods of a subclass close over an extra scope holding `super`,
        # matching the scope the Resolver opens for it.
        if superclass is not None:
            self.environment = Environment(self.environment)
            self.environment.define("super", superclass)

        methods: Dict[str, LoxFunction] = {}
        for method in stmt.methods:
            methods[method.name.lexeme] = LoxFunction(
                method, self.environment, method.name.lexeme == "init"
            )

        klass = LoxClass(stmt.name.lexeme, superclass, methods)

        if superclass is not None:
            self.environment = self.environment.enclosing

        self.environment.assign(stmt.name, klass)
        self._dbg("CLASS", klass)

    # --- Expressions ---

    def evaluate(self, expr: Expr) -> Any:
        match expr:
            case Literal(value=value):
                return value
            case Grouping(expression=inner):
                return self.evaluate(inner)
            case Variable(name=name):
                return self._look_up_variable(name, expr)
            case Assign(name=name, value=value_expr):
                value = self.evaluate(value_expr)
                distance = self.locals.get(expr)
                if distance is not None:
                    self.environment.assign_at(distance, name, value)
                else:
                    self.globals.assign(name, value)
                return value
            case Logical(left=left_expr, operator=operator, right=right_expr):
                left = self.evaluate(left_expr)
                if operator.type == TokenType.OR:
                    if is_truthy(left):
                        return left
                elif not is_truthy(left):
                    return left
                return self.evaluate(right_expr)
            case Unary(operator=operator, right=right_expr):
                return self._unary(operator, self.evaluate(right_expr))
            case Binary(left=left_expr, operator=operator, right=right_expr):
                left = self.evaluate(left_expr)
                right = self.evaluate(right_expr)
                return self._binary(operator, left, right)
            case Call():
                return self._call(expr)
            case Get(object=obj_expr, name=name):
                obj = self.evaluate(obj_expr)
                if isinstance(obj, LoxInstance):
                    return obj.get(name)
                raise LoxRuntimeError(name, "Only instances have properties.")
            case Set(object=obj_expr, name=name, value=value_expr):
                obj = self.evaluate(obj_expr)
                if not isinstance(obj, LoxInstance):
                    raise LoxRuntimeError(name, "Only instances have fields.")
                value = self.evaluate(value_expr)
                obj.set(name, value)
                return value
            case This(keyword=keyword):
                return self._look_up_variable(keyword, expr)
            case Super(method=method_name):
                return self._super(expr, method_name)
        raise TypeError(f"unknown expression node: {type(expr).__name__}")

    def _look_up_variable(self, name: Token, expr: Expr) -> Any:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _super(self, expr: Super, method_name: Token) -> Any:
        distance = self.locals[expr]
        superclass = self.environment.get_at(distance, "super")
        # `this` always lives in the scope just inside the one holding `super`.
        instance = self.environment.get_at(distance - 1, "this")
        method = superclass.find_method(method_name.lexeme)
        if method is None:
            raise LoxRuntimeError(method_name, f"Undefined property '{method_name.lexeme}'.")
        return method.bind(instance)

    def _unary(self, operator: Token, right: Any) -> Any:
        match operator.type:
            case TokenType.MINUS:
                self._check_number_operand(operator, right)
                return -right
            case TokenType.BANG:
                return not is_truthy(right)
        raise LoxRuntimeError(operator, f"Unknown unary operator '{operator.lexeme}'.")

    def _binary(self, operator: Token, left: Any, right: Any) -> Any:
        match operator.type:
            case TokenType.EQUAL_EQUAL:
                return is_equal(left, right)
            case TokenType.BANG_EQUAL:
                return not is_equal(left, right)
            case TokenType.PLUS:
                if is_number(left) and is_number(right):
                    return left + right
                if isinstance(left, str) and (isinstance(right, str) or is_number(right)):
                    return left + stringify(right)
                if is_number(left) and isinstance(right, str):
                    raise LoxRuntimeError(operator, "Left operand must be a string to concat strings.")
                raise LoxRuntimeError(operator, "Operands must be two numbers or two strings.")

        self._check_number_operands(operator, left, right)
        match operator.type:
            case TokenType.MINUS:
                return left - right
            case TokenType.STAR:
                return left * right
            case TokenType.SLASH:
                return _divide(left, right)
            case TokenType.GREATER:
                return left > right
            case TokenType.GREATER_EQUAL:
                return left >= right
            case TokenType.LESS:
                return left < right
            case TokenType.LESS_EQUAL:
                return left <= right
        raise LoxRuntimeError(operator, f"Unknown binary operator '{operator.lexeme}'.")

    def _check_number_operand(self, operator: Token, operand: Any):
        if not is_number(operand):
            raise LoxRuntimeError(operator, "Operand must be a number.")

    def _check_number_operands(self, operator: Token, left: Any, right: Any):
        if not (is_number(left) and is_number(right)):
            raise LoxRuntimeError(operator, "Operands must be numbers.")

    # --- Calls ---

    def _call(self, expr: Call) -> Any:
        callee = self.evaluate(expr.callee)
        arguments = [self.evaluate(arg) for arg in expr.arguments]

        if not isinstance(callee, LoxCallable):
            raise LoxRuntimeError(expr.paren, "Can only call functions and classes.")
        if len(arguments) != callee.arity():
            raise LoxRuntimeError(
                expr.paren, f"Expected {callee.arity()} arguments but got {len(arguments)}."
            )
        return self.call(callee, arguments, expr.paren)

    def call(self, callee: LoxCallable, arguments: List[Any], call_site: Token) -> Any:
        """Invokes a callable with already-checked arguments, tracking the Lox call stack."""
        name = getattr(callee, 'name', '<callable>')
        self._push_frame(name, callee, arguments, call_site)
        try:
            return callee.call(self, arguments)
        except LoxRuntimeError as e:
            if e.stacktrace is None:
                e.stacktrace = list(self.call_stack)
            raise
        except RecursionError:
            err = LoxRuntimeError(call_site, "Stack overflow.")
            err.stacktrace = list(self.call_stack)
            raise err from None
        finally:
            self._pop_frame()
