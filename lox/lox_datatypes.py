"""
Defines the core data types for the Lox runtime.

This module provides the Environment chain used for lexical scoping, the
callable value types (native functions, user functions and classes),
instances, and the two non-value signals the evaluator deals in: a runtime
error and a function return.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from lox.lox_tokens import Token

if TYPE_CHECKING:
    from lox.lox_ast import Function
    from lox.lox_interpreter import Evaluator


class LoxRuntimeError(Exception):
    """A runtime error in a Lox program, located by the token that caused it."""
    def __init__(self, token: Optional[Token], message: str):
        super().__init__(message)
        self.token = token
        self.message = message
        # Snapshot of the Lox call stack at the point the error was raised.
        self.stacktrace: Optional[List[Dict[str, Any]]] = None


class ReturnValue:
    """Completion produced by a `return` statement.

    Statement execution hands this back up through enclosing blocks and loops
    until the function call that owns it unwraps it.
    """
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"ReturnValue({self.value!r})"


def is_return(x) -> bool:
    return isinstance(x, ReturnValue)


# =================================================================
# Environments
# =================================================================

class Environment:
    """A single lexical scope plus a link to the scope that encloses it.

    Blocks, calls and method bindings each get a fresh Environment. Closures
    keep a reference to the Environment they were defined in, so a scope
    lives as long as anything still holds it.
    """
    def __init__(self, enclosing: Optional['Environment'] = None):
        self.values: Dict[str, Any] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Any):
        self.values[name] = value

    def get(self, name: Token) -> Any:
        env = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def assign(self, name: Token, value: Any):
        env = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def ancestor(self, distance: int) -> 'Environment':
        env = self
        for _ in range(distance):
            if env.enclosing is None:
                raise LookupError(f"no environment {distance} hops out")
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Any:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: Token, value: Any):
        self.ancestor(distance).values[name.lexeme] = value

    def __contains__(self, name: str) -> bool:
        """Checks if a name is bound in this Environment or any enclosing one."""
        env = self
        while env is not None:
            if name in env.values:
                return True
            env = env.enclosing
        return False

    def __repr__(self) -> str:
        keys = ', '.join(self.values.keys())
        parent_id = f", enclosing=#{id(self.enclosing)}" if self.enclosing else ""
        return f"<Environment values=[{keys}]{parent_id}>"


# =================================================================
# Callables
# =================================================================

class LoxCallable(ABC):
    """Abstract base class for all values that can be called from Lox."""

    @abstractmethod
    def arity(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def call(self, evaluator: 'Evaluator', arguments: List[Any]) -> Any:
        raise NotImplementedError


class NativeFunction(LoxCallable):
    """Wraps a Python callable; its arity comes from the Python signature."""
    def __init__(self, name: str, fn: Callable[..., Any]):
        self.name = name
        self.fn = fn
        self._arity = len(inspect.signature(fn).parameters)

    def arity(self) -> int:
        return self._arity

    def call(self, evaluator: 'Evaluator', arguments: List[Any]) -> Any:
        return self.fn(*arguments)

    def __repr__(self) -> str:
        return f"<NativeFunction {self.name}/{self._arity}>"


class LoxFunction(LoxCallable):
    """A function or method declared in Lox.

    This is a closure, bundling the declaration with the Environment it was
    defined in. Initializers always hand back the bound `this`.
    """
    def __init__(self, declaration: 'Function', closure: Environment, is_initializer: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_initializer = is_initializer

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def arity(self) -> int:
        return len(self.declaration.params)

    def bind(self, instance: 'LoxInstance') -> 'LoxFunction':
        env = Environment(self.closure)
        env.define("this", instance)
        return LoxFunction(self.declaration, env, self.is_initializer)

    def call(self, evaluator: 'Evaluator', arguments: List[Any]) -> Any:
        env = Environment(self.closure)
        for param, arg in zip(self.declaration.params, arguments):
            env.define(param.lexeme, arg)

        result = evaluator.execute_block(self.declaration.body, env)

        if self.is_initializer:
            return self.closure.get_at(0, "this")
        return result.value if is_return(result) else None

    def __repr__(self) -> str:
        return f"<LoxFunction {self.name}/{self.arity()}>"


class LoxClass(LoxCallable):
    """A class: a name, an optional superclass and a method table."""
    def __init__(self, name: str, superclass: Optional['LoxClass'], methods: Dict[str, LoxFunction]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def find_method(self, name: str) -> Optional[LoxFunction]:
        klass = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method("init")
        return initializer.arity() if initializer is not None else 0

    def call(self, evaluator: 'Evaluator', arguments: List[Any]) -> Any:
        instance = LoxInstance(self)
        initializer = self.find_method("init")
        if initializer is not None:
            initializer.bind(instance).call(evaluator, arguments)
        return instance

    def __repr__(self) -> str:
        parent = f" < {self.superclass.name}" if self.superclass else ""
        return f"<LoxClass {self.name}{parent}>"


class LoxInstance:
    """An object created by calling a LoxClass."""
    __slots__ = ("_klass", "fields")

    def __init__(self, klass: LoxClass):
        self._klass = klass
        self.fields: Dict[str, Any] = {}

    @property
    def klass(self) -> LoxClass:
        return self._klass

    def get(self, name: Token) -> Any:
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]
        method = self._klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)
        raise LoxRuntimeError(name, f"Undefined property '{name.lexeme}'.")

    def set(self, name: Token, value: Any):
        self.fields[name.lexeme] = value

    def __repr__(self) -> str:
        return f"<LoxInstance of {self._klass.name}>"
