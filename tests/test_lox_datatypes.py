import pytest
from lox.lox_datatypes import (
    Environment, LoxRuntimeError, NativeFunction, LoxClass, LoxInstance, ReturnValue, is_return
)
from lox.lox_tokens import Token, TokenType


def name(lexeme: str) -> Token:
    return Token(TokenType.IDENTIFIER, lexeme, None, 1, 1)

# --- Environment Tests ---

def test_environment_init():
    parent = Environment()
    child = Environment(parent)
    assert child.enclosing is parent
    assert not child.values
    assert Environment().enclosing is None

def test_define_and_get():
    env = Environment()
    env.define("a", 1)
    assert env.get(name("a")) == 1

def test_define_overwrites():
    env = Environment()
    env.define("a", 1)
    env.define("a", 2)
    assert env.get(name("a")) == 2

def test_get_walks_the_chain():
    parent = Environment()
    parent.define("a", 100)
    parent.define("b", 200)
    child = Environment(parent)
    child.define("b", 20)  # shadow parent

    assert child.get(name("a")) == 100
    assert child.get(name("b")) == 20
    assert parent.get(name("b")) == 200

def test_get_undefined_raises_runtime_error():
    env = Environment(Environment())
    with pytest.raises(LoxRuntimeError) as exc:
        env.get(name("missing"))
    assert exc.value.message == "Undefined variable 'missing'."
    assert exc.value.token.lexeme == "missing"

def test_assign_updates_the_defining_scope():
    parent = Environment()
    parent.define("a", 1)
    child = Environment(parent)
    child.assign(name("a"), 2)
    assert parent.values["a"] == 2
    assert "a" not in child.values

def test_assign_undefined_raises_runtime_error():
    with pytest.raises(LoxRuntimeError, match="Undefined variable 'x'."):
        Environment().assign(name("x"), 1)

def test_get_at_and_assign_at():
    root = Environment()
    root.define("a", "root")
    middle = Environment(root)
    middle.define("a", "middle")
    leaf = Environment(middle)

    assert leaf.get_at(1, "a") == "middle"
    assert leaf.get_at(2, "a") == "root"
    leaf.assign_at(2, name("a"), "changed")
    assert root.values["a"] == "changed"
    assert middle.values["a"] == "middle"

def test_ancestor():
    root = Environment()
    leaf = Environment(Environment(root))
    assert leaf.ancestor(0) is leaf
    assert leaf.ancestor(2) is root
    with pytest.raises(LookupError):
        leaf.ancestor(3)

def test_contains():
    parent = Environment()
    parent.define("a", None)
    child = Environment(parent)
    assert "a" in child
    assert "b" not in child

# --- Callables and instances ---

def test_native_function_arity_from_signature():
    assert NativeFunction("zero", lambda: 0).arity() == 0
    assert NativeFunction("two", lambda a, b: a + b).arity() == 2
    assert NativeFunction("two", lambda a, b: a + b).call(None, [1, 2]) == 3

def test_class_without_init_has_zero_arity():
    klass = LoxClass("A", None, {})
    assert klass.arity() == 0
    assert klass.find_method("init") is None

def test_instance_fields():
    instance = LoxInstance(LoxClass("A", None, {}))
    instance.set(name("x"), 1)
    assert instance.get(name("x")) == 1
    assert instance.klass.name == "A"
    with pytest.raises(LoxRuntimeError, match="Undefined property 'y'."):
        instance.get(name("y"))

def test_find_method_walks_superclasses():
    marker = object()
    base = LoxClass("Base", None, {"m": marker})
    derived = LoxClass("Derived", base, {})
    assert derived.find_method("m") is marker
    assert derived.find_method("n") is None

def test_return_value():
    result = ReturnValue(5)
    assert is_return(result)
    assert result.value == 5
    assert not is_return(5)
    assert not is_return(None)
