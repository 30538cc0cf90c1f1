import sys

import pyparsing
from pyparsing import (
    Word, alphas, alphanums, Keyword, Optional, ZeroOrMore,
    Forward, Suppress, ParserElement, Regex, QuotedString, Group
)
import re

import apispec

# Enable packrat for performance
ParserElement.enable_packrat()


def _make_code(s: str, loc: int, t) -> apispec.HTTPResponseCode:
    try:
        return apispec.HTTPResponseCode(int(t[0]))
    except ValueError:
        raise pyparsing.ParseFatalException(s, loc, f"unsupported response code {t[0]}")


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "f": "\f"}
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)


def _unescape(body: str) -> str:
    """Decode `\\uXXXX` and the single-character escapes; `\\x` is `x` otherwise."""
    def repl(m):
        s = m.group(1)
        if len(s) == 5:
            return chr(int(s[1:], 16))
        return _ESCAPES.get(s, s)
    return _ESCAPE_RE.sub(repl, body)


def _make_api(t) -> apispec.API:
    # Tokens: [pre], APICall, Response
    if len(t) == 3:
        pre, call, post = t
    else:
        pre = None
        call, post = t
    return apispec.API(pre, call, post)


def file_parse(text: str) -> apispec.Spec:
    NormalComment = Regex(r"//.*")
    BlockComment = Regex(r"/\*.*?\*/", flags=re.DOTALL)

    # Keywords
    GLOBAL = Keyword("global")
    INIT = Keyword("init")
    FUNCTION = Keyword("function")
    API = Keyword("api")
    PRE = Keyword("pre")
    CALL = Keyword("call")
    POST = Keyword("post")

    # Type constructor names are only special in type position.
    MAP = Suppress(Keyword("map"))
    SET = Suppress(Keyword("set"))
    TUPLE = Suppress(Keyword("tuple"))
    FN = Suppress(Keyword("fn"))

    # Punctuation
    LPAREN = Suppress("(")
    RPAREN = Suppress(")")
    LBRACE = Suppress("{")
    RBRACE = Suppress("}")
    LANGLE = Suppress("<")
    RANGLE = Suppress(">")
    SEMI = Suppress(";")
    COLON = Suppress(":")
    COMMA = Suppress(",")
    EQUALS = Suppress("=")
    ARROW = Suppress("->")

    # Identifiers
    Ident = Word(alphas + "_", alphanums + "_")
    Reserved = GLOBAL | INIT | FUNCTION | API | PRE | CALL | POST
    Identifier = (~Reserved + Ident).set_parse_action(lambda t: t[0])

    # --- Types ---
    TypeExpr = Forward()
    TypeList = Group(Optional(TypeExpr + ZeroOrMore(COMMA + TypeExpr)))

    MapType = (MAP + LANGLE + TypeExpr + COMMA + TypeExpr + RANGLE).set_parse_action(
        lambda t: apispec.MapType(t[0], t[1])
    )
    SetType = (SET + LANGLE + TypeExpr + RANGLE).set_parse_action(
        lambda t: apispec.SetType(t[0])
    )
    TupleType = (TUPLE + LANGLE + Group(TypeExpr + ZeroOrMore(COMMA + TypeExpr)) + RANGLE).set_parse_action(
        lambda t: apispec.TupleType(list(t[0]))
    )
    FuncType = (FN + LPAREN + TypeList + RPAREN + ARROW + TypeExpr).set_parse_action(
        lambda t: apispec.FuncType(list(t[0]), t[1])
    )
    # Must use copy() to avoid mutating Identifier which is used elsewhere as string
    TypeConst = Identifier.copy().set_parse_action(lambda t: apispec.TypeConst(t[0]))

    # `map` alone falls through to a plain type constant.
    TypeExpr <<= MapType | SetType | TupleType | FuncType | TypeConst

    # --- Expressions ---
    Exp = Forward()
    ExpList = Group(Optional(Exp + ZeroOrMore(COMMA + Exp)))

    Num = Regex(r"-?\d+").set_parse_action(lambda t: apispec.NumConst(int(t[0])))
    # Escapes are decoded by _unescape so `\uXXXX` round-trips with the printer.
    Str = QuotedString('"', esc_char="\\", unquote_results=False).set_parse_action(
        lambda t: apispec.StringConst(_unescape(t[0][1:-1]))
    )

    Call = (Identifier + LPAREN + ExpList + RPAREN).set_parse_action(
        lambda t: apispec.FuncCall(t[0], list(t[1]))
    )
    VarIdent = Identifier.copy().set_parse_action(lambda t: apispec.Var(t[0]))

    MapEntry = Group(Exp + COLON + Exp)
    EmptyMap = (LBRACE + COLON + RBRACE).set_parse_action(lambda _: apispec.MapExp([]))
    MapLit = (LBRACE + MapEntry + ZeroOrMore(COMMA + MapEntry) + RBRACE).set_parse_action(
        lambda t: apispec.MapExp([(g[0], g[1]) for g in t])
    )
    SetLit = (LBRACE + ExpList + RBRACE).set_parse_action(lambda t: apispec.SetExp(list(t[0])))
    # `(a,)` is a one-element tuple, `()` the empty one.
    TupleLit = (LPAREN + Exp + COMMA + Optional(Exp + ZeroOrMore(COMMA + Exp)) + RPAREN).set_parse_action(
        lambda t: apispec.TupleExp(list(t))
    )
    EmptyTuple = (LPAREN + RPAREN).set_parse_action(lambda _: apispec.TupleExp([]))

    # Order matters: `{:}` and `{k: v}` before sets, tuples before parentheses, calls before variables.
    Exp <<= (
        Num |
        Str |
        EmptyMap |
        MapLit |
        SetLit |
        TupleLit |
        EmptyTuple |
        (LPAREN + Exp + RPAREN) |
        Call |
        VarIdent
    )

    # --- Declarations ---
    # A status code ends at a word boundary: `200OK` is not `200 OK`.
    Code = Regex(r"\d+\b").set_parse_action(_make_code)

    Response = (Code + Optional(Exp)).set_parse_action(
        lambda t: apispec.Response(t[0], t[1] if len(t) > 1 else None)
    )

    GlobalDecl = (Suppress(GLOBAL) - Identifier + COLON + TypeExpr + SEMI).set_parse_action(
        lambda t: apispec.Decl(t[0], t[1])
    )

    InitDecl = (Suppress(INIT) - Identifier + EQUALS + Exp + SEMI).set_parse_action(
        lambda t: apispec.Init(t[0], t[1])
    )

    Returns = Group(Optional(LPAREN + TypeExpr + ZeroOrMore(COMMA + TypeExpr) + RPAREN))
    FuncDecl = (Suppress(FUNCTION) - Identifier + LPAREN + TypeList + RPAREN + ARROW + Code + Returns + SEMI).set_parse_action(
        lambda t: apispec.FuncDecl(t[0], list(t[1]), t[2], list(t[3]))
    )

    PreClause = Suppress(PRE) - Exp + SEMI
    CallClause = (Suppress(CALL) - Call + ARROW + Response + SEMI).set_parse_action(
        lambda t: apispec.APICall(t[0], t[1])
    )
    PostClause = Suppress(POST) - Response + SEMI

    ApiBlock = (Suppress(API) - LBRACE + Optional(PreClause) + CallClause + PostClause + RBRACE).set_parse_action(_make_api)

    SpecParser = ZeroOrMore(GlobalDecl | InitDecl | FuncDecl | ApiBlock)

    SpecParser.ignore(NormalComment)
    SpecParser.ignore(BlockComment)

    try:
        items = SpecParser.parse_string(text, parse_all=True)
        spec = apispec.Spec(
            globals=[x for x in items if isinstance(x, apispec.Decl)],
            inits=[x for x in items if isinstance(x, apispec.Init)],
            functions=[x for x in items if isinstance(x, apispec.FuncDecl)],
            blocks=[x for x in items if isinstance(x, apispec.API)],
        )
        _validate_spec(text, spec)
        return spec
    except pyparsing.ParseBaseException as e:
        print(f"Parse Error at line {e.lineno}, column {e.col}:", file=sys.stderr)
        print(e.line, file=sys.stderr)
        print(" " * (e.col - 1) + "^", file=sys.stderr)
        print(f"Message: {e.msg}", file=sys.stderr)
        raise e


def _validate_spec(src: str, spec: apispec.Spec) -> None:
    """Reject structurally ill-formed specs (duplicate globals or function declarations)."""

    def fatal(msg: str) -> None:
        # The AST does not carry source locations; use loc=0 and a clear message.
        raise pyparsing.ParseFatalException(src, 0, msg)

    seen: set[str] = set()
    for d in spec.globals:
        if d.name in seen:
            fatal(f"duplicate global `{d.name}`")
        seen.add(d.name)

    seen = set()
    for f in spec.functions:
        if f.name in seen:
            fatal(f"duplicate function `{f.name}`")
        seen.add(f.name)
