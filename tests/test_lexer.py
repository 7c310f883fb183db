import pytest

from lexer import Lexer, MiniPyParseError, Token, UnexpectedCharacterError


def kinds(source):
    return [tok.type for tok in Lexer(source).tokenize()]


def test_assignment_line():
    tokens = Lexer("x = 42\n").tokenize()
    assert [(t.type, t.value) for t in tokens] == [
        ("IDENT", "x"),
        ("EQ", "="),
        ("NUMBER", "42"),
        ("NEWLINE", "\n"),
        ("EOF", ""),
    ]


def test_keywords_are_lowercase_only():
    assert kinds("if else while print") == ["IF", "ELSE", "WHILE", "PRINT", "EOF"]
    assert kinds("If PRINT") == ["IDENT", "IDENT", "EOF"]
    assert kinds("printer") == ["IDENT", "EOF"]


def test_operators_and_comparisons():
    assert kinds("+ - * / % ( ) :") == [
        "PLUS", "MINUS", "STAR", "SLASH", "MOD", "LPAREN", "RPAREN", "COLON", "EOF",
    ]
    assert kinds("== != > >= < <= =") == ["EQEQ", "NEQ", "GT", "GTE", "LT", "LTE", "EQ", "EOF"]


def test_lone_bang_is_dropped():
    assert kinds("a ! b") == ["IDENT", "IDENT", "EOF"]


def test_comment_keeps_newline():
    assert kinds("x = 1 # note\ny = 2\n") == [
        "IDENT", "EQ", "NUMBER", "NEWLINE", "IDENT", "EQ", "NUMBER", "NEWLINE", "EOF",
    ]


def test_minus_is_never_part_of_number():
    assert kinds("-5") == ["MINUS", "NUMBER", "EOF"]


def test_positions_are_tracked():
    tokens = Lexer("a = 1\n  b = 2").tokenize()
    b = tokens[4]
    assert b == Token("IDENT", "b", 2, 3)


def test_tokens_are_immutable():
    token = Token("NUMBER", "1")
    with pytest.raises(AttributeError):
        token.value = "2"


def test_unexpected_character():
    with pytest.raises(UnexpectedCharacterError) as info:
        Lexer("x = 1\ny = $\n", "prog.mpy").tokenize()
    assert isinstance(info.value, MiniPyParseError)
    assert info.value.char == "$"
    assert "prog.mpy:2:5" in str(info.value)
