from lox.lox_runtime import ScriptRunner, Diagnostic, MAX_TRACE_FRAMES
from lox.lox_tokens import Token


def test_runtime_error_reports_message_line_and_caret():
    runner = ScriptRunner()
    res = runner.handle_script("var x = 1;\nprint x + nil;")
    assert res.status == 'error'
    assert res.error_message == "Operands must be two numbers or two strings.\n[line 2]"
    assert res.error_token.lexeme == "+"
    assert res.had_runtime_error and not res.had_error

    report = res.format_error()
    print(report)
    assert "Operands must be two numbers or two strings.\n[line 2]" in report
    assert "> 2 | print x + nil;" in report
    caret_line = report.splitlines()[report.splitlines().index("> 2 | print x + nil;") + 1]
    assert caret_line.index("^") == len("> 2 | print x ")

    # Consolidated stderr side-effect carries the diagnostic
    stderr_effects = [e for e in res.side_effects if e.get('topics') == ['stderr']]
    assert stderr_effects, f"stderr side effect missing: {res.side_effects}"
    assert stderr_effects[-1]['message'] == res.error_message

def test_stacktrace_shows_function_chain():
    runner = ScriptRunner()
    script = """fun boom() { return -nil; }
fun middle() { return boom(); }
fun outer() { return middle(); }
outer();
"""
    res = runner.handle_script(script)
    assert res.status == 'error', res.error_message
    trace = res.diagnostics[0].trace
    assert trace == [
        "[line 1] in boom()",
        "[line 2] in middle()",
        "[line 3] in outer()",
        "[line 4] in script",
    ]
    assert "[line 2] in middle()" in res.format_error()

def test_error_at_top_level_has_script_frame_only():
    res = ScriptRunner().handle_script("print -nil;")
    assert res.diagnostics[0].trace == ["[line 1] in script"]

def test_deep_stacktrace_is_elided():
    res = ScriptRunner().handle_script("fun f(n) { if (n == 0) return -nil; return f(n - 1); }\nf(40);")
    trace = res.diagnostics[0].trace
    assert len(trace) == MAX_TRACE_FRAMES + 1
    assert any("more frames" in line for line in trace)
    assert trace[-1] == "[line 2] in script"

def test_call_stack_is_empty_after_error():
    runner = ScriptRunner()
    runner.handle_script("fun f() { return -nil; } f();")
    assert runner.evaluator.call_stack == []

def test_parse_error_format():
    res = ScriptRunner().handle_script("print 1")
    assert res.status == 'error'
    assert res.had_error and not res.had_runtime_error
    assert res.error_message == "[line 1] Error at end: Expect ';' after value."

def test_parse_error_at_token():
    res = ScriptRunner().handle_script("var 1 = 2;")
    assert res.error_message == "[line 1] Error at '1': Expect variable name."
    assert res.error_token.lexeme == "1"

def test_lexical_error_format():
    res = ScriptRunner().handle_script("print 1; @")
    assert res.error_message == "[line 1] Error: Unexpected character: @."
    assert res.diagnostics[0].kind == 'lexical'

def test_lexical_and_syntax_errors_are_reported_together():
    res = ScriptRunner().handle_script("print @;")
    assert [d.kind for d in res.diagnostics] == ['lexical', 'syntax']
    assert str(res.diagnostics[1]) == "[line 1] Error at ';': Expect expression."

def test_multiple_syntax_errors_are_all_reported():
    res = ScriptRunner().handle_script("print;\nvar;\nprint 1;")
    assert [str(d) for d in res.diagnostics] == [
        "[line 1] Error at ';': Expect expression.",
        "[line 2] Error at ';': Expect variable name.",
    ]
    report = res.format_error()
    assert "[line 1] Error at ';': Expect expression." in report
    assert "[line 2] Error at ';': Expect variable name." in report

def test_syntax_errors_prevent_execution():
    res = ScriptRunner().handle_script('print "ran"; print;')
    assert res.output == []

def test_resolve_errors_prevent_execution():
    res = ScriptRunner().handle_script('print "ran"; return 1;')
    assert res.status == 'error'
    assert res.output == []
    assert res.error_message == "[line 1] Error at 'return': Can't return from top-level code."
    assert res.diagnostics[0].kind == 'resolve'

def test_callbacks_receive_errors_and_output():
    printed, errors, runtime_errors = [], [], []
    runner = ScriptRunner(
        on_print=printed.append,
        on_error=lambda where, msg: errors.append((where, msg)),
        on_runtime_error=runtime_errors.append,
    )
    runner.handle_script("print 1;")
    assert printed == ["1"]

    runner.handle_script("print #;")
    assert errors[0] == (1, "Unexpected character: #.")
    assert isinstance(errors[1][0], Token)
    assert errors[1][1] == "Expect expression."

    runner.handle_script("nil();")
    assert len(runtime_errors) == 1
    assert runtime_errors[0].message == "Can only call functions and classes."

def test_error_state_resets_between_runs():
    runner = ScriptRunner()
    assert runner.handle_script("print;").status == 'error'
    res = runner.handle_script("print 1;")
    assert res.ok
    assert res.diagnostics == []
    assert res.format_error() == ""

def test_globals_persist_across_runs():
    runner = ScriptRunner()
    runner.handle_script("var a = 1; fun inc() { a = a + 1; }")
    runner.handle_script("inc();")
    assert runner.handle_script("print a;").output == ["2"]

def test_runner_without_natives():
    res = ScriptRunner(load_natives=False).handle_script("clock();")
    assert res.error_message == "Undefined variable 'clock'.\n[line 1]"

def test_diagnostic_str():
    assert str(Diagnostic('syntax', "Oops.", 3, where=" at 'x'")) == "[line 3] Error at 'x': Oops."
    assert str(Diagnostic('lexical', "Bad.", 2)) == "[line 2] Error: Bad."
    assert str(Diagnostic('runtime', "Boom.", 4)) == "Boom.\n[line 4]"

def test_runs_are_deterministic():
    src = """
class Counter {
  init() { this.n = 0; }
  tick() { this.n = this.n + 1; return this.n; }
}
var c = Counter();
for (var i = 0; i < 5; i = i + 1) c.tick();
print c.n;
print c;
"""
    first = ScriptRunner().handle_script(src)
    second = ScriptRunner().handle_script(src)
    assert first.output == second.output == ["5", "Counter instance"]

def test_debug_tracing_goes_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("LOX_DEBUG", "1")
    res = ScriptRunner().handle_script("class A {} print A;")
    assert res.output == ["A"]
    assert "[DBG] CLASS" in capsys.readouterr().err

def test_no_debug_tracing_by_default(monkeypatch, capsys):
    monkeypatch.delenv("LOX_DEBUG", raising=False)
    ScriptRunner().handle_script("class A {}")
    assert capsys.readouterr().err == ""

def test_nesting_too_deep_to_parse_is_a_syntax_error():
    depth = 3000
    res = ScriptRunner().handle_script("print " + "(" * depth + "1" + ")" * depth + ";")
    assert res.status == 'error'
    assert res.had_error and not res.had_runtime_error
    assert [d.kind for d in res.diagnostics] == ['syntax']
    assert res.diagnostics[0].message == "Stack overflow."
    assert res.diagnostics[0].line == 1
    assert res.error_message.startswith("[line 1] Error at ")
    assert res.output == []
