import pytest
from lox.lox_scanner import Scanner, scan_tokens
from lox.lox_tokens import TokenType as T


def scan(src: str):
    errors = []
    tokens = list(scan_tokens(src, lambda line, msg: errors.append((line, msg))))
    return tokens, errors

def types(tokens):
    return [t.type for t in tokens]


def test_empty_source_is_just_eof():
    tokens, errors = scan("")
    assert types(tokens) == [T.EOF]
    assert tokens[0].lexeme == ""
    assert tokens[0].line == 1
    assert errors == []

def test_single_and_double_character_operators():
    tokens, errors = scan("(){},.-+;*/ ! != = == < <= > >=")
    assert errors == []
    assert types(tokens) == [
        T.LEFT_PAREN, T.RIGHT_PAREN, T.LEFT_BRACE, T.RIGHT_BRACE,
        T.COMMA, T.DOT, T.MINUS, T.PLUS, T.SEMICOLON, T.STAR, T.SLASH,
        T.BANG, T.BANG_EQUAL, T.EQUAL, T.EQUAL_EQUAL,
        T.LESS, T.LESS_EQUAL, T.GREATER, T.GREATER_EQUAL,
        T.EOF,
    ]

def test_maximal_munch_prefers_two_character_operators():
    tokens, _ = scan("===")
    assert types(tokens) == [T.EQUAL_EQUAL, T.EQUAL, T.EOF]

def test_keywords_and_identifiers():
    tokens, _ = scan("and class else false for fun if nil or print return super this true var while orchid _x1")
    assert types(tokens)[:16] == [
        T.AND, T.CLASS, T.ELSE, T.FALSE, T.FOR, T.FUN, T.IF, T.NIL,
        T.OR, T.PRINT, T.RETURN, T.SUPER, T.THIS, T.TRUE, T.VAR, T.WHILE,
    ]
    assert tokens[16].type == T.IDENTIFIER and tokens[16].lexeme == "orchid"
    assert tokens[17].type == T.IDENTIFIER and tokens[17].lexeme == "_x1"

def test_number_literals_are_floats():
    tokens, _ = scan("123 45.67")
    assert tokens[0].literal == 123.0
    assert isinstance(tokens[0].literal, float)
    assert tokens[1].literal == 45.67
    assert tokens[1].lexeme == "45.67"

def test_trailing_and_leading_dots_are_not_part_of_a_number():
    tokens, _ = scan("123. .5")
    assert types(tokens) == [T.NUMBER, T.DOT, T.DOT, T.NUMBER, T.EOF]
    assert tokens[0].lexeme == "123"
    assert tokens[3].literal == 5.0

def test_method_call_on_number_literal():
    tokens, _ = scan("1.foo")
    assert types(tokens) == [T.NUMBER, T.DOT, T.IDENTIFIER, T.EOF]

def test_string_literal_excludes_quotes():
    tokens, errors = scan('"hello world"')
    assert errors == []
    assert tokens[0].type == T.STRING
    assert tokens[0].lexeme == '"hello world"'
    assert tokens[0].literal == "hello world"

def test_strings_have_no_escape_sequences():
    tokens, _ = scan(r'"a\nb"')
    assert tokens[0].literal == "a\\nb"

def test_unterminated_string_is_reported_and_dropped():
    tokens, errors = scan('print "oops')
    assert errors == [(1, "Unterminated string.")]
    assert types(tokens) == [T.PRINT, T.EOF]

def test_string_stops_at_newline():
    tokens, errors = scan('"abc\nvar')
    assert errors == [(1, "Unterminated string.")]
    assert types(tokens) == [T.VAR, T.EOF]
    assert tokens[0].line == 2

def test_unexpected_characters_do_not_stop_the_scan():
    tokens, errors = scan("var @ x # = 1;")
    assert errors == [(1, "Unexpected character: @."), (1, "Unexpected character: #.")]
    assert types(tokens) == [T.VAR, T.IDENTIFIER, T.EQUAL, T.NUMBER, T.SEMICOLON, T.EOF]

def test_line_comments_are_skipped():
    tokens, _ = scan("a // comment ( ) !\nb")
    assert [t.lexeme for t in tokens[:-1]] == ["a", "b"]
    assert tokens[1].line == 2

def test_block_comments_are_skipped_and_count_lines():
    tokens, _ = scan("a /* one\ntwo\n*/ b")
    assert types(tokens) == [T.IDENTIFIER, T.IDENTIFIER, T.EOF]
    assert tokens[1].line == 3

def test_block_comments_do_not_nest():
    tokens, _ = scan("/* outer /* inner */ x */")
    assert types(tokens) == [T.IDENTIFIER, T.STAR, T.SLASH, T.EOF]

def test_line_and_column_tracking():
    tokens, _ = scan("var x;\n  print x;")
    var, x, semi, pr = tokens[:4]
    assert (var.line, var.column) == (1, 1)
    assert (x.line, x.column) == (1, 5)
    assert (semi.line, semi.column) == (1, 6)
    assert (pr.line, pr.column) == (2, 3)
    assert tokens[-1].line == 2

def test_eof_is_always_last():
    tokens, _ = scan("1 + 2")
    assert tokens[-1].type == T.EOF
    assert sum(1 for t in tokens if t.type == T.EOF) == 1

def test_scanner_restarts_on_each_call():
    scanner = Scanner("a b")
    first = [t.lexeme for t in scanner.scan_tokens()]
    second = [t.lexeme for t in scanner.scan_tokens()]
    assert first == second == ["a", "b", ""]

def test_scan_is_lazy():
    errors = []
    stream = scan_tokens("a @", lambda line, msg: errors.append(msg))
    assert next(stream).lexeme == "a"
    assert errors == []
    list(stream)
    assert errors == ["Unexpected character: @."]

def test_token_str():
    tokens, _ = scan("12")
    assert str(tokens[0]) == "NUMBER 12 12.0"
