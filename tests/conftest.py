from pathlib import Path

import pytest

import apispec as A

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def build_signup_spec(call_args=("uid", "p")) -> A.Spec:
    """The sign-up scenario: global map U, four initializers, `signup(string, string)`."""
    globals_ = [A.Decl("U", A.MapType(A.TypeConst("string"), A.TypeConst("string")))]
    inits = [
        A.Init("uid", A.StringConst("user123")),
        A.Init("p", A.StringConst("password")),
        A.Init("NIL", A.StringConst("")),
        A.Init("U_prime", A.Var("U")),
    ]
    funcs = [
        A.FuncDecl(
            "signup",
            [A.TypeConst("string"), A.TypeConst("string")],
            A.HTTPResponseCode.OK_200,
            [A.TypeConst("string")],
        )
    ]
    pre = A.FuncCall("equals", [
        A.FuncCall("map_access", [A.Var("U"), A.Var("uid")]),
        A.Var("NIL"),
    ])
    call = A.APICall(
        A.FuncCall("signup", [A.Var(a) for a in call_args]),
        A.Response(A.HTTPResponseCode.OK_200, A.Var("OK")),
    )
    post = A.Response(
        A.HTTPResponseCode.OK_200,
        A.FuncCall("equals", [
            A.FuncCall("map_access", [A.Var("U_prime"), A.Var("uid")]),
            A.Var("p"),
        ]),
    )
    return A.Spec(globals_, inits, funcs, [A.API(pre, call, post)])


@pytest.fixture
def signup_spec():
    return build_signup_spec()


@pytest.fixture
def examples_dir() -> Path:
    return EXAMPLES
