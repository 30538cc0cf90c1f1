"""AST for API specifications: globals, initializers, function signatures and API blocks.

Expression and type-expression nodes form closed unions (`Exp`, `TypeExpr`);
consumers match on them exhaustively and treat anything else as malformed.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple, Union


class HTTPResponseCode(IntEnum):
    OK_200 = 200
    CREATED_201 = 201
    NO_CONTENT_204 = 204
    BAD_REQUEST_400 = 400
    UNAUTHORIZED_401 = 401
    FORBIDDEN_403 = 403
    NOT_FOUND_404 = 404
    CONFLICT_409 = 409
    INTERNAL_SERVER_ERROR_500 = 500

    def __str__(self):
        return str(self.value)


# --- Type expressions ---

@dataclass
class TypeConst:
    name: str

@dataclass
class MapType:
    domain: "TypeExpr"
    range: "TypeExpr"

@dataclass
class SetType:
    elem: "TypeExpr"

@dataclass
class TupleType:
    elems: List["TypeExpr"]

@dataclass
class FuncType:
    params: List["TypeExpr"]
    ret: "TypeExpr"

TypeExpr = Union[TypeConst, MapType, SetType, TupleType, FuncType]


# --- Expressions ---

@dataclass
class Var:
    name: str

@dataclass
class FuncCall:
    """Call of a user function, or of a built-in (`map_access`, `equals`) dispatched by name."""
    name: str
    args: List["Exp"]

@dataclass
class NumConst:
    value: int

@dataclass
class StringConst:
    value: str

@dataclass
class SetExp:
    elems: List["Exp"]

@dataclass
class MapExp:
    entries: List[Tuple["Exp", "Exp"]]

@dataclass
class TupleExp:
    elems: List["Exp"]

Exp = Union[Var, FuncCall, NumConst, StringConst, SetExp, MapExp, TupleExp]


# --- Declarations ---

@dataclass
class Decl:
    name: str
    type: TypeExpr

@dataclass
class Init:
    name: str
    exp: Exp

@dataclass
class FuncDecl:
    name: str
    params: List[TypeExpr]
    code: HTTPResponseCode
    returns: List[TypeExpr] = field(default_factory=list)

@dataclass
class Response:
    code: HTTPResponseCode
    exp: Optional[Exp] = None

@dataclass
class APICall:
    call: FuncCall
    response: Response

@dataclass
class API:
    pre: Optional[Exp]
    call: APICall
    response: Response # postcondition

@dataclass
class Spec:
    globals: List[Decl] = field(default_factory=list)
    inits: List[Init] = field(default_factory=list)
    functions: List[FuncDecl] = field(default_factory=list)
    blocks: List[API] = field(default_factory=list)
