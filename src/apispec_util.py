"""Utilities for printing API specification ASTs.

Everything here renders back into the surface syntax accepted by
`apispec_parse.file_parse`, so printed specs can be parsed again.
"""

from typing import Mapping

import apispec

_ESCAPES = {"\\": "\\\\", "\"": "\\\"", "\n": "\\n", "\t": "\\t", "\r": "\\r", "\f": "\\f"}


def quote(s: str) -> str:
    """Quote a string literal; other control characters become `\\uXXXX`."""
    out = []
    for ch in s:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7f:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "\"" + "".join(out) + "\""


def stringify_type(t: apispec.TypeExpr) -> str:
    """Render a type expression, e.g. `map<string, string>`."""
    match t:
        case apispec.TypeConst(name): return name
        case apispec.MapType(dom, rng): return f"map<{stringify_type(dom)}, {stringify_type(rng)}>"
        case apispec.SetType(elem): return f"set<{stringify_type(elem)}>"
        case apispec.TupleType(elems): return f"tuple<{', '.join(stringify_type(x) for x in elems)}>"
        case apispec.FuncType(params, ret):
            return f"fn({', '.join(stringify_type(x) for x in params)}) -> {stringify_type(ret)}"
        case _: return str(t)


def stringify(e: apispec.Exp) -> str:
    """Render an expression, e.g. `equals(map_access(U, uid), NIL)`."""
    match e:
        case apispec.Var(name): return name
        case apispec.NumConst(v): return str(v)
        case apispec.StringConst(v): return quote(v)
        case apispec.FuncCall(name, args): return f"{name}({', '.join(stringify(a) for a in args)})"
        case apispec.SetExp(elems): return "{" + ", ".join(stringify(x) for x in elems) + "}"
        case apispec.MapExp([]): return "{:}"
        case apispec.MapExp(entries):
            return "{" + ", ".join(f"{stringify(k)}: {stringify(v)}" for k, v in entries) + "}"
        case apispec.TupleExp([x]): return f"({stringify(x)},)"
        case apispec.TupleExp(elems): return "(" + ", ".join(stringify(x) for x in elems) + ")"
        case _: return str(e)


def stringify_response(r: apispec.Response) -> str:
    if r.exp is None:
        return str(r.code)
    return f"{r.code} {stringify(r.exp)}"


def stringify_decl(d: apispec.Decl) -> str:
    return f"global {d.name}: {stringify_type(d.type)};"


def stringify_init(i: apispec.Init) -> str:
    return f"init {i.name} = {stringify(i.exp)};"


def stringify_func(f: apispec.FuncDecl) -> str:
    params = ", ".join(stringify_type(t) for t in f.params)
    line = f"function {f.name}({params}) -> {f.code}"
    if f.returns:
        line += " (" + ", ".join(stringify_type(t) for t in f.returns) + ")"
    return line + ";"


def stringify_api(api: apispec.API, indent: int = 0) -> str:
    space = "    " * indent
    inner = "    " * (indent + 1)
    lines = [f"{space}api {{"]
    if api.pre is not None:
        lines.append(f"{inner}pre {stringify(api.pre)};")
    lines.append(f"{inner}call {stringify(api.call.call)} -> {stringify_response(api.call.response)};")
    lines.append(f"{inner}post {stringify_response(api.response)};")
    lines.append(f"{space}}}")
    return "\n".join(lines)


def stringify_spec(spec: apispec.Spec) -> str:
    """Render a whole spec: globals, then initializers, functions and API blocks."""
    sections = [
        [stringify_decl(d) for d in spec.globals],
        [stringify_init(i) for i in spec.inits],
        [stringify_func(f) for f in spec.functions],
        ["\n\n".join(stringify_api(api) for api in spec.blocks)] if spec.blocks else [],
    ]
    return "\n\n".join("\n".join(s) for s in sections if s) + "\n"


def stringify_env(env: Mapping[str, object]) -> str:
    """Render an environment table one `name: type` binding per line, in insertion order."""
    return "\n".join(f"  {name}: {ty}" for name, ty in env.items())
