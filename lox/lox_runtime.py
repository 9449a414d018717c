# lox_runtime.py

import inspect
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional, Union

import pystache

from lox.lox_tokens import Token, TokenType
from lox.lox_scanner import scan_tokens
from lox.lox_parser import Parser
from lox.lox_resolver import Resolver
from lox.lox_interpreter import Evaluator
from lox.lox_datatypes import LoxRuntimeError

# ===================================================================
# 1. The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for the Lox native functions."""

    def _clock(self):
        return time.time()


# ===================================================================
# 2. Diagnostics
# ===================================================================

ErrorFn = Callable[[Union[int, Token], str], None]
RuntimeErrorFn = Callable[[LoxRuntimeError], None]

# Longest Lox call stack printed in an error report before eliding frames.
MAX_TRACE_FRAMES = 16

ERROR_REPORT_TEMPLATE = """\
{{#diagnostics}}
{{text}}
{{#context}}
{{.}}
{{/context}}
{{#trace}}
{{.}}
{{/trace}}
{{/diagnostics}}"""


@dataclass
class Diagnostic:
    """One reported problem, from any stage of the pipeline."""
    kind: Literal['lexical', 'syntax', 'resolve', 'runtime']
    message: str
    line: int
    column: Optional[int] = None
    lexeme: Optional[str] = None
    where: str = ""
    trace: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.kind == 'runtime':
            return f"{self.message}\n[line {self.line}]"
        return f"[line {self.line}] Error{self.where}: {self.message}"


def _where(token: Token) -> str:
    if token.type == TokenType.EOF:
        return " at end"
    return f" at '{token.lexeme}'"


def _source_context(source: str, line: int, col: Optional[int], radius: int = 2) -> List[str]:
    lines = source.splitlines()
    if not line or line < 1 or line > len(lines):
        return []
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    width = len(str(end))
    out = []
    for i in range(start, end + 1):
        prefix = ">" if i == line else " "
        ln = str(i).rjust(width)
        out.append(f"{prefix} {ln} | {lines[i - 1]}")
        if i == line and col is not None:
            caret = " " * max(col - 1, 0)
            out.append(f"  {' ' * width} | {caret}^")
    return out


def _format_stacktrace(error: LoxRuntimeError) -> List[str]:
    """Lox call stack for a runtime error, innermost frame first."""
    frames = error.stacktrace or []
    line = error.token.line if error.token is not None else 0
    out = []
    for frame in reversed(frames):
        out.append(f"[line {line}] in {frame['name']}()")
        line = frame['call_site'].line
    out.append(f"[line {line}] in script")
    if len(out) > MAX_TRACE_FRAMES:
        hidden = len(out) - MAX_TRACE_FRAMES
        out = out[:MAX_TRACE_FRAMES // 2] + [f"... {hidden} more frames ..."] + out[-(MAX_TRACE_FRAMES // 2):]
    return out


# ===================================================================
# 3. Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    diagnostics: List[Diagnostic] = field(default_factory=list)
    side_effects: List[Dict] = field(default_factory=list)
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    source: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    @property
    def output(self) -> List[str]:
        """Lines written by `print`, in order."""
        return [e['message'] for e in self.side_effects if e.get('topics') == ['stdout']]

    @property
    def had_error(self) -> bool:
        """True when lexing, parsing or resolving failed."""
        return any(d.kind != 'runtime' for d in self.diagnostics)

    @property
    def had_runtime_error(self) -> bool:
        return any(d.kind == 'runtime' for d in self.diagnostics)

    def format_error(self) -> str:
        """Formats every diagnostic with the surrounding source lines."""
        if self.status != 'error':
            return ""
        if not self.diagnostics:
            return str(self.error_message or "Unknown error")
        context = {
            'diagnostics': [
                {
                    'text': str(d),
                    'context': _source_context(self.source, d.line, d.column),
                    'trace': d.trace,
                }
                for d in self.diagnostics
            ]
        }
        renderer = pystache.Renderer(escape=lambda u: u)
        return renderer.render(ERROR_REPORT_TEMPLATE, context).rstrip("\n")


class ScriptRunner:
    """Scans, parses, resolves and executes Lox code.

    One runner keeps its Evaluator, and therefore its globals, across calls to
    handle_script, so a REPL session builds on earlier lines. Error state is
    per call.
    """

    def __init__(
        self,
        on_print: Optional[Callable[[str], None]] = None,
        on_error: Optional[ErrorFn] = None,
        on_runtime_error: Optional[RuntimeErrorFn] = None,
        load_natives: bool = True,
    ):
        self.on_print = on_print
        self.on_error = on_error
        self.on_runtime_error = on_runtime_error
        self.evaluator = Evaluator(on_print=on_print)
        self._diagnostics: List[Diagnostic] = []
        self._first_token: Optional[Token] = None

        if load_natives:
            stdlib = StdLib()
            for name, member in inspect.getmembers(stdlib):
                if name.startswith('_') and not name.startswith('__') and callable(member):
                    self.evaluator.define_native(name[1:], member)

    # --- Error channel ---

    def _report(self, kind: str, line_or_token: Union[int, Token], message: str):
        if isinstance(line_or_token, Token):
            token = line_or_token
            diagnostic = Diagnostic(kind, message, token.line, token.column, token.lexeme, _where(token))
        else:
            diagnostic = Diagnostic(kind, message, line_or_token)
        self._diagnostics.append(diagnostic)
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': str(diagnostic)})
        self.evaluator._dbg("ERROR", kind, str(diagnostic))
        if self.on_error is not None:
            self.on_error(line_or_token, message)

    def _report_runtime(self, error: LoxRuntimeError):
        token = error.token
        diagnostic = Diagnostic(
            'runtime', error.message,
            token.line if token is not None else 0,
            token.column if token is not None else None,
            token.lexeme if token is not None else None,
            trace=_format_stacktrace(error),
        )
        self._diagnostics.append(diagnostic)
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': str(diagnostic)})
        if self.on_runtime_error is not None:
            self.on_runtime_error(error)

    def _result(self, source: str) -> ExecutionResult:
        diagnostics = list(self._diagnostics)
        first = diagnostics[0] if diagnostics else None
        return ExecutionResult(
            status='error' if diagnostics else 'success',
            diagnostics=diagnostics,
            side_effects=list(self.evaluator.side_effects),
            error_message=str(first) if first else None,
            error_token=self._first_token,
            source=source,
        )

    # --- Entry point ---

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self._diagnostics = []
        self._first_token = None
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()

        def report_lexical(line: int, message: str):
            self._report('lexical', line, message)

        def report_syntax(token: Token, message: str):
            if self._first_token is None:
                self._first_token = token
            self._report('syntax', token, message)

        def report_resolve(token: Token, message: str):
            if self._first_token is None:
                self._first_token = token
            self._report('resolve', token, message)

        try:
            # 1. Scan and parse; the parser pulls tokens as it goes.
            parser = Parser(scan_tokens(source_code, report_lexical), report_syntax)
            try:
                statements = parser.parse()
            except RecursionError:
                # Nesting deeper than the host stack allows; nothing has run yet.
                report_syntax(parser.current_token(), "Stack overflow.")
                return self._result(source_code)
            if self._diagnostics:
                return self._result(source_code)

            # 2. Resolve
            Resolver(self.evaluator, report_resolve).resolve(statements)
            if self._diagnostics:
                return self._result(source_code)

            # 3. Evaluate
            self.evaluator.interpret(statements)
            return self._result(source_code)

        except LoxRuntimeError as e:
            if self._first_token is None:
                self._first_token = e.token
            self._report_runtime(e)
            return self._result(source_code)
        except RecursionError:
            self._report_runtime(LoxRuntimeError(None, "Stack overflow."))
            return self._result(source_code)
        except Exception as e:
            msg = f"InternalError: {e}"
            self.evaluator.side_effects.append({'topics': ['stderr'], 'message': msg})
            return ExecutionResult(
                status='error',
                error_message=msg,
                side_effects=list(self.evaluator.side_effects),
                source=source_code,
            )
