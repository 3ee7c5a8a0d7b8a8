import pytest

from tmplzap.lexer import Item, ItemType, Lexer, lex

T = ItemType

EOF = (T.EOF, "")
LEFT = (T.LEFT_DELIM, "{{")
RIGHT = (T.RIGHT_DELIM, "}}")
RANGE = (T.RANGE, "range")
PIPE = (T.PIPE, "|")
FOR = (T.IDENTIFIER, "for")
QUOTE = (T.STRING, r'"abc \n\t\" "')
RAW = "`" + r"abc\n\t\" " + "`"
RAW_QUOTE = (T.RAW_STRING, RAW)

LEX_TESTS = [
    ("empty", "", [EOF]),
    ("spaces", " \t\n", [(T.TEXT, " \t\n"), EOF]),
    ("text", "now is the time", [(T.TEXT, "now is the time"), EOF]),
    ("text with comment", "hello-{{/* this is a comment */}}-world",
     [(T.TEXT, "hello-"), (T.TEXT, "-world"), EOF]),
    ("punctuation", "{{,@%}}",
     [LEFT, (T.CHAR, ","), (T.CHAR, "@"), (T.CHAR, "%"), RIGHT, EOF]),
    ("parens", "{{((3))}}",
     [LEFT, (T.LEFT_PAREN, "("), (T.LEFT_PAREN, "("), (T.NUMBER, "3"),
      (T.RIGHT_PAREN, ")"), (T.RIGHT_PAREN, ")"), RIGHT, EOF]),
    ("empty action", "{{}}", [LEFT, RIGHT, EOF]),
    ("for", "{{for }}", [LEFT, FOR, RIGHT, EOF]),
    ("quote", r'{{"abc \n\t\" "}}', [LEFT, QUOTE, RIGHT, EOF]),
    ("raw quote", "{{" + RAW + "}}", [LEFT, RAW_QUOTE, RIGHT, EOF]),
    ("numbers", "{{1 02 0x14 -7.2i 1e3 +1.2e-4 4.2i 1+2i}}",
     [LEFT, (T.NUMBER, "1"), (T.NUMBER, "02"), (T.NUMBER, "0x14"),
      (T.NUMBER, "-7.2i"), (T.NUMBER, "1e3"), (T.NUMBER, "+1.2e-4"),
      (T.NUMBER, "4.2i"), (T.COMPLEX, "1+2i"), RIGHT, EOF]),
    ("characters", r"{{'a' '\n' '\'' '\\' '\u00FF' '\xFF' '本'}}",
     [LEFT, (T.CHAR_CONSTANT, "'a'"), (T.CHAR_CONSTANT, r"'\n'"),
      (T.CHAR_CONSTANT, r"'\''"), (T.CHAR_CONSTANT, r"'\\'"),
      (T.CHAR_CONSTANT, r"'\u00FF'"), (T.CHAR_CONSTANT, r"'\xFF'"),
      (T.CHAR_CONSTANT, "'本'"), RIGHT, EOF]),
    ("bools", "{{true false}}", [LEFT, (T.BOOL, "true"), (T.BOOL, "false"), RIGHT, EOF]),
    ("dot", "{{.}}", [LEFT, (T.DOT, "."), RIGHT, EOF]),
    ("nil", "{{nil}}", [LEFT, (T.NIL, "nil"), RIGHT, EOF]),
    ("dots", "{{.x . .2 .x.y}}",
     [LEFT, (T.FIELD, ".x"), (T.DOT, "."), (T.NUMBER, ".2"), (T.FIELD, ".x.y"), RIGHT, EOF]),
    ("keywords", "{{range if else end with}}",
     [LEFT, (T.RANGE, "range"), (T.IF, "if"), (T.ELSE, "else"), (T.END, "end"),
      (T.WITH, "with"), RIGHT, EOF]),
    ("variables", "{{$c := printf $ $hello $23 $ $var.Field .Method}}",
     [LEFT, (T.VARIABLE, "$c"), (T.COLON_EQUALS, ":="), (T.IDENTIFIER, "printf"),
      (T.VARIABLE, "$"), (T.VARIABLE, "$hello"), (T.VARIABLE, "$23"), (T.VARIABLE, "$"),
      (T.VARIABLE, "$var.Field"), (T.FIELD, ".Method"), RIGHT, EOF]),
    ("pipeline", 'intro {{echo hi 1.2 |noargs|args 1 "hi"}} outro',
     [(T.TEXT, "intro "), LEFT, (T.IDENTIFIER, "echo"), (T.IDENTIFIER, "hi"),
      (T.NUMBER, "1.2"), PIPE, (T.IDENTIFIER, "noargs"), PIPE, (T.IDENTIFIER, "args"),
      (T.NUMBER, "1"), (T.STRING, '"hi"'), RIGHT, (T.TEXT, " outro"), EOF]),
    ("declaration", "{{$v := 3}}",
     [LEFT, (T.VARIABLE, "$v"), (T.COLON_EQUALS, ":="), (T.NUMBER, "3"), RIGHT, EOF]),
    ("2 declarations", "{{$v , $w := 3}}",
     [LEFT, (T.VARIABLE, "$v"), (T.CHAR, ","), (T.VARIABLE, "$w"),
      (T.COLON_EQUALS, ":="), (T.NUMBER, "3"), RIGHT, EOF]),
    ("badchar", "#{{\x01}}",
     [(T.TEXT, "#"), LEFT, (T.ERROR, "unrecognized character in action: U+0001")]),
    ("unclosed action", "{{\n}}", [LEFT, (T.ERROR, "unclosed action")]),
    ("EOF in action", "{{range", [LEFT, RANGE, (T.ERROR, "unclosed action")]),
    ("unclosed quote", '{{"\n"}}', [LEFT, (T.ERROR, "unterminated quoted string")]),
    ("unclosed raw quote", "{{`xx\n`}}", [LEFT, (T.ERROR, "unterminated raw quoted string")]),
    ("unclosed char constant", "{{'\n}}", [LEFT, (T.ERROR, "unterminated character constant")]),
    ("bad number", "{{3k}}", [LEFT, (T.ERROR, 'bad number syntax: "3k"')]),
    ("unclosed paren", "{{(3}}",
     [LEFT, (T.LEFT_PAREN, "("), (T.NUMBER, "3"), (T.ERROR, "unclosed left paren")]),
    ("extra right paren", "{{3)}}",
     [LEFT, (T.NUMBER, "3"), (T.RIGHT_PAREN, ")"),
      (T.ERROR, "unexpected right paren U+0029 ')'")]),
    ("long pipeline deadlock", "{{|||||}}", [LEFT, PIPE, PIPE, PIPE, PIPE, PIPE, RIGHT, EOF]),
    ("text with bad comment", "hello-{{/*/}}-world",
     [(T.TEXT, "hello-"), (T.ERROR, "unclosed comment")]),
]


def collect(text, left="", right=""):
    return [(item.typ, item.val) for item in lex("test", text, left, right)]


@pytest.mark.parametrize("name,text,expected", LEX_TESTS, ids=[t[0] for t in LEX_TESTS])
def test_lex(name, text, expected):
    assert collect(text) == expected


LEFT_D = (T.LEFT_DELIM, "$$")
RIGHT_D = (T.RIGHT_DELIM, "@@")

DELIM_TESTS = [
    ("punctuation", "$$,@%{{}}@@",
     [LEFT_D, (T.CHAR, ","), (T.CHAR, "@"), (T.CHAR, "%"), (T.CHAR, "{"), (T.CHAR, "{"),
      (T.CHAR, "}"), (T.CHAR, "}"), RIGHT_D, EOF]),
    ("empty action", "$$@@", [LEFT_D, RIGHT_D, EOF]),
    ("for", "$$for @@", [LEFT_D, FOR, RIGHT_D, EOF]),
    ("quote", r'$$"abc \n\t\" "@@', [LEFT_D, QUOTE, RIGHT_D, EOF]),
    ("raw quote", "$$" + RAW + "@@", [LEFT_D, RAW_QUOTE, RIGHT_D, EOF]),
]


@pytest.mark.parametrize("name,text,expected", DELIM_TESTS, ids=[t[0] for t in DELIM_TESTS])
def test_delims(name, text, expected):
    assert collect(text, "$$", "@@") == expected


POS_TESTS = [
    ("empty", "", [Item(T.EOF, 0, "")]),
    ("punctuation", "{{,@%#}}", [
        Item(T.LEFT_DELIM, 0, "{{"),
        Item(T.CHAR, 2, ","),
        Item(T.CHAR, 3, "@"),
        Item(T.CHAR, 4, "%"),
        Item(T.CHAR, 5, "#"),
        Item(T.RIGHT_DELIM, 6, "}}"),
        Item(T.EOF, 8, ""),
    ]),
    ("sample", "0123{{hello}}xyz", [
        Item(T.TEXT, 0, "0123"),
        Item(T.LEFT_DELIM, 4, "{{"),
        Item(T.IDENTIFIER, 6, "hello"),
        Item(T.RIGHT_DELIM, 11, "}}"),
        Item(T.TEXT, 13, "xyz"),
        Item(T.EOF, 16, ""),
    ]),
]


@pytest.mark.parametrize("name,text,expected", POS_TESTS, ids=[t[0] for t in POS_TESTS])
def test_positions(name, text, expected):
    assert list(lex(name, text)) == expected


def test_default_delimiters_when_empty():
    lexer = Lexer("t", "x", "", "")
    assert (lexer.left_delim, lexer.right_delim) == ("{{", "}}")


def test_line_number_follows_last_item():
    lexer = lex("t", "a\nb\n{{x}}")
    assert lexer.next_item() == Item(T.TEXT, 0, "a\nb\n")
    assert lexer.line_number() == 1
    assert lexer.next_item().typ == T.LEFT_DELIM
    assert lexer.line_number() == 3


def test_next_item_after_end_keeps_returning_eof():
    lexer = lex("t", "ab")
    assert lexer.next_item() == Item(T.TEXT, 0, "ab")
    assert lexer.next_item().typ == T.EOF
    assert lexer.next_item().typ == T.EOF


def test_bad_character_after_identifier():
    items = collect("{{$x+2}}")
    assert items[-1] == (T.ERROR, "bad character U+002B '+'")


def test_field_of_parenthesized_expression_rejected():
    items = collect("{{(a).X}}")
    assert items[-1] == (T.ERROR, "cannot evaluate field of parenthesized expression")


def test_colon_without_equals():
    assert collect("{{$x :}}")[-1] == (T.ERROR, "expected :=")


def test_item_string_forms():
    assert str(Item(T.EOF, 0, "")) == "EOF"
    assert str(Item(T.ERROR, 0, "boom")) == "boom"
    assert str(Item(T.RANGE, 0, "range")) == "<range>"
    assert str(Item(T.TEXT, 0, "hello")) == '"hello"'
    assert str(Item(T.TEXT, 0, "0123456789abc")) == '"0123456789"...'
    assert str(Item(T.TEXT, 0, "a\nb")) == '"a\\nb"'


def test_item_type_names():
    items = list(lex("t", "{{$x := 1}}"))
    assert [str(item.typ) for item in items] == [
        "left delim", "variable", ":=", "number", "right delim", "EOF",
    ]
    dot, ident = [item.typ for item in lex("t", "{{. for}}")][1:3]
    assert dot.is_keyword
    assert not ident.is_keyword