from lox.lox_runtime import ScriptRunner, ExecutionResult, Diagnostic
from lox.lox_datatypes import LoxRuntimeError

__all__ = ["ScriptRunner", "ExecutionResult", "Diagnostic", "LoxRuntimeError"]
