import sys

from apispec_parse import file_parse
from apispec_util import stringify_env, stringify_spec
from typecheck import DECLARED_POLICY, SIMPLIFIED_POLICY, CheckSession, TypeChecker

USAGE = "usage: apispec-check [--verbose] [--print-ast] [--declared-types] FILE"


def print_and_exit(msg: str, code: int) -> None:
    try:
        print(msg)
    except BrokenPipeError:
        pass
    raise SystemExit(code)


def print_err(msg: str) -> None:
    try:
        print(msg, file=sys.stderr)
    except BrokenPipeError:
        pass


class CmdLineArgs:
    def __init__(
        self,
        filename: str,
        *,
        verbose: bool,
        print_ast: bool,
        declared_types: bool,
    ):
        self.filename = filename
        self.verbose = verbose
        self.print_ast = print_ast
        self.declared_types = declared_types


def parse_cmd_line_args(argv: list[str]) -> CmdLineArgs:
    verbose = False
    print_ast = False
    declared_types = False
    positional: list[str] = []

    for a in argv:
        if a in ("--verbose", "-v"):
            verbose = True
        elif a == "--print-ast":
            print_ast = True
        elif a == "--declared-types":
            declared_types = True
        elif a in ("--help", "-h"):
            print_and_exit(USAGE, 0)
        elif a.startswith("-"):
            print_err(USAGE)
            print_and_exit("error", 1)
        else:
            positional.append(a)

    if len(positional) != 1:
        print_err(USAGE)
        print_and_exit("error", 1)

    return CmdLineArgs(
        positional[0],
        verbose=verbose,
        print_ast=print_ast,
        declared_types=declared_types,
    )


def dump_session(session: CheckSession) -> None:
    """Write the environments built by a run to stderr."""
    signatures = {
        name: f"({', '.join(str(t) for t in params)}) -> {ret}"
        for name, (params, ret) in session.function_env.items()
    }
    print_err("globals:")
    print_err(stringify_env(session.globals))
    print_err("variables:")
    print_err(stringify_env(session.variable_env))
    print_err("functions:")
    print_err(stringify_env(signatures))


def main(argv: list[str] | None = None) -> None:
    cmd = parse_cmd_line_args(sys.argv[1:] if argv is None else argv)
    try:
        with open(cmd.filename, "r", encoding="utf-8") as f:
            src = f.read()
    except OSError as e:
        if cmd.verbose:
            print_err(str(e))
        print_and_exit("error", 1)

    try:
        spec = file_parse(src)
    except Exception as e:
        if cmd.verbose:
            print_err(str(e))
        print_and_exit("error", 1)

    if cmd.verbose:
        print_err(
            f"parsed {len(spec.globals)} globals, {len(spec.inits)} initializers, "
            f"{len(spec.functions)} functions, {len(spec.blocks)} api blocks"
        )

    if cmd.print_ast:
        print("Generated AST:")
        print(stringify_spec(spec))

    checker = TypeChecker(DECLARED_POLICY if cmd.declared_types else SIMPLIFIED_POLICY)
    ok = checker.type_check_spec(spec)

    if cmd.verbose:
        dump_session(checker.session)

    if ok:
        print_and_exit("Typechecking success!", 0)

    print_err("Typechecking failed.")
    for err in checker.errors():
        print_err(f"  - {err}")
    raise SystemExit(2)


if __name__ == "__main__":
    main()
