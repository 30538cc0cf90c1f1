"""
Tests for the specification parser: source text -> AST nodes.
"""

import pyparsing
import pytest

import apispec as A
from apispec_parse import file_parse
from conftest import build_signup_spec

SIGNUP = """
global U: map<string, string>;
init uid = "user123";
init p = "password";
init NIL = "";
init U_prime = U;
function signup(string, string) -> 200 (string);
api {
    pre equals(map_access(U, uid), NIL);
    call signup(uid, p) -> 200 OK;
    post 200 equals(map_access(U_prime, uid), p);
}
"""


def parse_exp(src: str) -> A.Exp:
    return file_parse(f"init x = {src};").inits[0].exp


def parse_type(src: str) -> A.TypeExpr:
    return file_parse(f"global x: {src};").globals[0].type


class TestParseEmpty:

    def test_empty_string(self):
        assert file_parse("") == A.Spec()

    def test_comments_only(self):
        assert file_parse("// a comment\n/* a\n block */\n") == A.Spec()


class TestParseSpec:

    def test_signup_matches_hand_built_ast(self):
        assert file_parse(SIGNUP) == build_signup_spec()

    def test_items_may_be_interleaved(self):
        spec = file_parse("""
            function f() -> 200;
            init a = 1;
            global G: string;
            init b = 2;
        """)
        assert [i.name for i in spec.inits] == ["a", "b"]
        assert [g.name for g in spec.globals] == ["G"]
        assert [f.name for f in spec.functions] == ["f"]

    def test_comment_inside_block(self):
        spec = file_parse("""
            api {
                // no precondition
                call f() -> 200; /* inline */ post 200;
            }
        """)
        assert len(spec.blocks) == 1


class TestParseTypes:

    def test_named(self):
        assert parse_type("string") == A.TypeConst("string")

    def test_map(self):
        assert parse_type("map<string, int>") == A.MapType(A.TypeConst("string"), A.TypeConst("int"))

    def test_nested_map(self):
        assert parse_type("map<string, map<string, int>>") == A.MapType(
            A.TypeConst("string"), A.MapType(A.TypeConst("string"), A.TypeConst("int"))
        )

    def test_set(self):
        assert parse_type("set<string>") == A.SetType(A.TypeConst("string"))

    def test_tuple(self):
        assert parse_type("tuple<string, int>") == A.TupleType([A.TypeConst("string"), A.TypeConst("int")])

    def test_function(self):
        assert parse_type("fn(string, int) -> bool") == A.FuncType(
            [A.TypeConst("string"), A.TypeConst("int")], A.TypeConst("bool")
        )

    def test_bare_map_is_a_name(self):
        assert parse_type("map") == A.TypeConst("map")


class TestParseExpressions:

    def test_var(self):
        assert parse_exp("U_prime") == A.Var("U_prime")

    def test_numbers(self):
        assert parse_exp("42") == A.NumConst(42)
        assert parse_exp("-7") == A.NumConst(-7)

    def test_string_with_escapes(self):
        assert parse_exp(r'"say \"hi\""') == A.StringConst('say "hi"')

    def test_string_control_escapes(self):
        assert parse_exp(r'"a\tb\nc\\"') == A.StringConst("a\tb\nc\\")
        assert parse_exp(r'"\u0041\u0007"') == A.StringConst("A\x07")

    def test_call_without_arguments(self):
        assert parse_exp("now()") == A.FuncCall("now", [])

    def test_nested_calls(self):
        assert parse_exp("equals(map_access(U, uid), NIL)") == A.FuncCall("equals", [
            A.FuncCall("map_access", [A.Var("U"), A.Var("uid")]),
            A.Var("NIL"),
        ])

    def test_set_literal(self):
        assert parse_exp("{a, 1}") == A.SetExp([A.Var("a"), A.NumConst(1)])

    def test_empty_set(self):
        assert parse_exp("{}") == A.SetExp([])

    def test_map_literal(self):
        assert parse_exp('{"a": 1, "b": 2}') == A.MapExp([
            (A.StringConst("a"), A.NumConst(1)),
            (A.StringConst("b"), A.NumConst(2)),
        ])

    def test_empty_map(self):
        assert parse_exp("{:}") == A.MapExp([])

    def test_tuple_literal(self):
        assert parse_exp("(a, b, 3)") == A.TupleExp([A.Var("a"), A.Var("b"), A.NumConst(3)])

    def test_one_element_tuple(self):
        assert parse_exp("(a,)") == A.TupleExp([A.Var("a")])

    def test_empty_tuple(self):
        assert parse_exp("()") == A.TupleExp([])

    def test_parentheses_group(self):
        assert parse_exp("(a)") == A.Var("a")

    def test_keyword_prefix_is_identifier(self):
        assert parse_exp("pre_state") == A.Var("pre_state")


class TestParseDeclarations:

    def test_function_without_returns(self):
        f = file_parse("function logout(string) -> 204;").functions[0]
        assert f == A.FuncDecl("logout", [A.TypeConst("string")], A.HTTPResponseCode.NO_CONTENT_204, [])

    def test_function_with_several_returns(self):
        f = file_parse("function pair() -> 200 (string, int);").functions[0]
        assert f.params == []
        assert f.returns == [A.TypeConst("string"), A.TypeConst("int")]

    def test_api_without_precondition(self):
        block = file_parse("api { call f(x) -> 201; post 201; }").blocks[0]
        assert block.pre is None
        assert block.call == A.APICall(
            A.FuncCall("f", [A.Var("x")]), A.Response(A.HTTPResponseCode.CREATED_201)
        )
        assert block.response == A.Response(A.HTTPResponseCode.CREATED_201, None)

    def test_api_with_response_expressions(self):
        block = file_parse("api { pre x; call f() -> 200 OK; post 404 NIL; }").blocks[0]
        assert block.pre == A.Var("x")
        assert block.call.response == A.Response(A.HTTPResponseCode.OK_200, A.Var("OK"))
        assert block.response == A.Response(A.HTTPResponseCode.NOT_FOUND_404, A.Var("NIL"))


class TestParseErrors:

    @pytest.mark.parametrize("src", [
        "global U map<string, string>;",
        "init x = ;",
        "api { pre x; post 200; }",
        "api { call f() -> 200; }",
        "function f(string) -> ;",
        "banana;",
        "api { call f() -> 200; post 200OK; }",
        "function f() -> 200x;",
    ])
    def test_syntax_errors(self, src):
        with pytest.raises(pyparsing.ParseBaseException):
            file_parse(src)

    def test_reserved_word_is_not_a_variable(self):
        with pytest.raises(pyparsing.ParseBaseException):
            file_parse("init post = 1;")

    def test_unsupported_response_code(self):
        with pytest.raises(pyparsing.ParseFatalException, match="unsupported response code 299"):
            file_parse("function f() -> 299;")

    def test_duplicate_global(self):
        with pytest.raises(pyparsing.ParseFatalException, match="duplicate global `U`"):
            file_parse("global U: string; global U: string;")

    def test_duplicate_function(self):
        with pytest.raises(pyparsing.ParseFatalException, match="duplicate function `f`"):
            file_parse("function f() -> 200; function f(string) -> 200;")

    def test_repeated_initializers_allowed(self):
        spec = file_parse("init x = 1; init x = \"a\";")
        assert len(spec.inits) == 2

    def test_error_location_reported(self, capsys):
        with pytest.raises(pyparsing.ParseBaseException):
            file_parse("init x = 1;\ninit y = ;")
        err = capsys.readouterr().err
        assert "Parse Error at line 2" in err
        assert "init y = ;" in err
