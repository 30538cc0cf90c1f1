"""Static type checking of API specifications.

A run builds three environments from the spec (declared globals, standard and
initialized variables, function signatures), then infers the type of every
precondition, call and postcondition. Problems never abort a run: each one is
recorded as a diagnostic string and inference continues with a placeholder
type, so a single pass reports as much as possible.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

import apispec


class Type(Enum):
    INT = "int"
    STRING = "string"
    BOOL = "bool"
    MAP = "map"
    VOID = "void"
    UNKNOWN = "unknown"

    def __str__(self):
        return self.value


Signature = Tuple[List[Type], Type]


class TypingPolicy(ABC):
    """Decides the types of standard variables, declared globals and function signatures.

    The traversal only ever asks the policy; swapping it changes how
    declarations are typed without touching inference.
    """

    standard_variables: Mapping[str, Type] = MappingProxyType({
        "uid": Type.STRING,
        "p": Type.STRING,
        "NIL": Type.STRING,
        "U_prime": Type.MAP,
        "OK": Type.STRING,
    })

    @abstractmethod
    def global_type(self, decl: apispec.Decl) -> Type:
        raise NotImplementedError

    @abstractmethod
    def param_types(self, func: apispec.FuncDecl) -> List[Type]:
        raise NotImplementedError

    @abstractmethod
    def return_type(self, func: apispec.FuncDecl) -> Type:
        raise NotImplementedError


class SimplifiedPolicy(TypingPolicy):
    """Globals are Map or String; every parameter and return value is String."""

    def global_type(self, decl: apispec.Decl) -> Type:
        if isinstance(decl.type, apispec.MapType):
            return Type.MAP
        return Type.STRING

    def param_types(self, func: apispec.FuncDecl) -> List[Type]:
        return [Type.STRING for _ in func.params]

    def return_type(self, func: apispec.FuncDecl) -> Type:
        return Type.STRING


class DeclaredPolicy(TypingPolicy):
    """Types globals, parameters and returns from their declared annotations."""

    _CONSTS = {
        "int": Type.INT,
        "string": Type.STRING,
        "bool": Type.BOOL,
        "void": Type.VOID,
    }

    def type_of(self, t: apispec.TypeExpr) -> Type:
        match t:
            case apispec.TypeConst(name):
                return self._CONSTS.get(name, Type.UNKNOWN)
            case apispec.MapType(_, _):
                return Type.MAP
            case _:
                return Type.UNKNOWN

    def global_type(self, decl: apispec.Decl) -> Type:
        return self.type_of(decl.type)

    def param_types(self, func: apispec.FuncDecl) -> List[Type]:
        return [self.type_of(t) for t in func.params]

    def return_type(self, func: apispec.FuncDecl) -> Type:
        if not func.returns:
            return Type.VOID
        if len(func.returns) == 1:
            return self.type_of(func.returns[0])
        return Type.UNKNOWN


SIMPLIFIED_POLICY = SimplifiedPolicy()
DECLARED_POLICY = DeclaredPolicy()


@dataclass
class CheckSession:
    """All state derived during one run; created fresh for every run."""
    policy: TypingPolicy
    globals: Dict[str, Type] = field(default_factory=dict)
    variable_env: Dict[str, Type] = field(default_factory=dict)
    function_env: Dict[str, Signature] = field(default_factory=dict)
    diagnostics: List[str] = field(default_factory=list)

    def report(self, msg: str) -> None:
        self.diagnostics.append(msg)


# --- Environment construction ---

def collect_globals(spec: apispec.Spec, session: CheckSession) -> None:
    """Seed standard variables, type declared globals, then type initializers in order."""
    session.variable_env.update(session.policy.standard_variables)

    for decl in spec.globals:
        session.globals[decl.name] = session.policy.global_type(decl)

    for init in spec.inits:
        session.variable_env[init.name] = infer(init.exp, session)


def collect_functions(spec: apispec.Spec, session: CheckSession) -> None:
    for func in spec.functions:
        session.function_env[func.name] = (
            session.policy.param_types(func),
            session.policy.return_type(func),
        )


# --- Expression inference ---

def infer(e: apispec.Exp, session: CheckSession) -> Type:
    """Return the type of `e`, recording any problems found along the way."""
    match e:
        case apispec.Var(name):
            return infer_var(name, session)
        case apispec.FuncCall("map_access", args):
            return infer_map_access(args, session)
        case apispec.FuncCall("equals", args):
            return infer_equals(args, session)
        case apispec.FuncCall():
            return infer_call(e, session)
        case apispec.StringConst(_):
            return Type.STRING
        case apispec.NumConst(_):
            return Type.INT
        case _:
            session.report("Unknown expression type")
            return Type.UNKNOWN


def infer_var(name: str, session: CheckSession) -> Type:
    if name in session.variable_env:
        return session.variable_env[name]
    if name in session.globals:
        return session.globals[name]
    session.report(f"Undefined variable: {name}")
    return Type.UNKNOWN


def infer_call(call: apispec.FuncCall, session: CheckSession) -> Type:
    """Resolve a user function call. Built-ins are not dispatched here."""
    if call.name not in session.function_env:
        session.report(f"Undefined function: {call.name}")
        return Type.UNKNOWN

    param_types, return_type = session.function_env[call.name]
    if len(call.args) != len(param_types):
        session.report(f"Arity mismatch for function: {call.name}")

    for i, (arg, param_ty) in enumerate(zip(call.args, param_types), start=1):
        if infer(arg, session) != param_ty:
            session.report(f"Type mismatch in argument {i} for function {call.name}")

    return return_type


def infer_map_access(args: List[apispec.Exp], session: CheckSession) -> Type:
    if len(args) != 2:
        session.report("map_access requires exactly 2 arguments")
        return Type.UNKNOWN

    base = infer(args[0], session)
    key = infer(args[1], session)
    if base != Type.MAP:
        session.report("First argument to map_access must be a map")
    if key != Type.STRING:
        session.report("Second argument to map_access must be a string")
    return Type.STRING


def infer_equals(args: List[apispec.Exp], session: CheckSession) -> Type:
    if len(args) != 2:
        session.report("equals requires exactly 2 arguments")
        return Type.UNKNOWN

    lhs = infer(args[0], session)
    rhs = infer(args[1], session)
    if lhs != rhs:
        session.report("Type mismatch in equality comparison")
    return Type.BOOL


# --- API blocks ---

def check_block(api: apispec.API, session: CheckSession) -> None:
    # Pre/postconditions are inferred only for their internal errors; their
    # result type is not required to be bool.
    if api.pre is not None:
        infer(api.pre, session)

    call_ty = infer_call(api.call.call, session)

    if call_ty == Type.UNKNOWN:
        session.report("Call result type unknown in postcondition")
    if api.response.exp is not None:
        infer(api.response.exp, session)


def check_spec(spec: apispec.Spec, policy: TypingPolicy = SIMPLIFIED_POLICY) -> CheckSession:
    """Run a full check of `spec` in a fresh session and return it."""
    session = CheckSession(policy)
    collect_globals(spec, session)
    collect_functions(spec, session)
    for api in spec.blocks:
        check_block(api, session)
    return session


class TypeChecker:
    """Reusable front end over `check_spec` that keeps the last run's session.

    Not safe for concurrent use: each run replaces the stored session.
    """

    def __init__(self, policy: TypingPolicy = SIMPLIFIED_POLICY):
        self.policy = policy
        self.session = CheckSession(policy)

    def type_check_spec(self, spec: apispec.Spec) -> bool:
        self.session = check_spec(spec, self.policy)
        return not self.session.diagnostics

    def errors(self) -> List[str]:
        return list(self.session.diagnostics)
