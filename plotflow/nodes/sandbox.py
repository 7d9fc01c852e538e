"""Restricted Python interpreter for user code.

User programs are parsed with :mod:`ast`, checked against a whitelist of
constructs, then executed by a tree-walking evaluator.  Nothing is ever
handed to ``exec``/``eval``: names resolve only against the program's own
variables and an explicit environment mapping supplied by the caller.

The program operates in two phases:
1. Parse-time validation: forbidden constructs are rejected when a
   :class:`SandboxProgram` is constructed
2. Execution: :meth:`SandboxProgram.run` walks the validated tree under a
   step budget, a call-depth limit and sequence/integer size caps

Allowed statements: expression statements, (augmented) assignment to
names, subscripts and tuple/list targets, ``if``, ``for``, ``while``,
``break``, ``continue``, ``pass``, ``return`` (also at top level, where
it ends the program) and ``def`` with positional parameters and
defaults.

Allowed expressions: literals, arithmetic, bitwise, comparison and
boolean operators, conditional expressions, subscripts and slices,
comprehensions, ``lambda``, calls (keyword arguments allowed, ``*``/``**``
unpacking not), and attribute access on environment namespaces plus a
few list and dict methods.

Forbidden: imports, classes, ``global``/``nonlocal``, ``try``/``with``/
``raise``, ``del``, decorators, async constructs, ``yield``, ``:=``,
f-strings, starred expressions, and any name or attribute beginning
with ``__`` or ``_`` respectively.
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from typing import Any, Callable, Iterable, Mapping

from plotflow.configs.loader import SandboxLimits

logger = logging.getLogger(__name__)

# Largest integer a program may build, in bits.
MAX_INT_BITS = 4096

# Width and precision fields of a printf-style conversion.
_FORMAT_SPEC = re.compile(r"%(?:\([^)]*\))?[-#0 +]*(\*|\d+)?(?:\.(\*|\d+))?")

LIST_METHODS = frozenset({"append", "extend", "pop", "insert", "reverse", "copy", "index"})
DICT_METHODS = frozenset({"get", "keys", "values", "items"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SandboxError(Exception):
    """Base class for every failure of user code."""


class SandboxSecurityError(SandboxError):
    """Raised when a program contains forbidden constructs."""


class SandboxSyntaxError(SandboxError):
    """Raised when a program is not valid Python syntax."""


class SandboxRuntimeError(SandboxError):
    """Raised when a valid program fails while running.

    Wraps host exceptions (``ZeroDivisionError``, ``IndexError``,
    ``TypeError`` ...) raised by operations on program values; the
    original exception is chained via ``__cause__``.
    """


class SandboxLimitError(SandboxError):
    """Raised when a program exceeds its step, depth or size budget."""


class SandboxOutputError(SandboxError):
    """Raised by callers when a program's result has the wrong shape."""


# ---------------------------------------------------------------------------
# Operator tables
# ---------------------------------------------------------------------------

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
}

_INPLACE_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.iadd,
    ast.Sub: operator.isub,
    ast.Mult: operator.imul,
    ast.Div: operator.itruediv,
    ast.FloorDiv: operator.ifloordiv,
    ast.Mod: operator.imod,
    ast.Pow: operator.ipow,
    ast.LShift: operator.ilshift,
    ast.RShift: operator.irshift,
    ast.BitAnd: operator.iand,
    ast.BitOr: operator.ior,
    ast.BitXor: operator.ixor,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Invert: operator.invert,
}

_COMPARISON_OPS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_BOOL_OPS = (ast.And, ast.Or)

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    # statements
    ast.Module,
    ast.Expr,
    ast.Assign,
    ast.AugAssign,
    ast.If,
    ast.For,
    ast.While,
    ast.Break,
    ast.Continue,
    ast.Pass,
    ast.Return,
    ast.FunctionDef,
    # expressions
    ast.Lambda,
    ast.arguments,
    ast.arg,
    ast.keyword,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.Name,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Set,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
    ast.GeneratorExp,
    ast.comprehension,
    ast.Load,
    ast.Store,
    *_BINARY_OPS,
    *_UNARY_OPS,
    *_COMPARISON_OPS,
    *_BOOL_OPS,
)

_CONSTANT_TYPES = (int, float, str, bool, type(None))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class _ProgramValidator(ast.NodeVisitor):
    """AST visitor that collects every forbidden construct in a program."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self._loop_depth = 0

    def _reject(self, node: ast.AST, message: str) -> None:
        line = getattr(node, "lineno", None)
        self.errors.append(f"line {line}: {message}" if line else message)

    def generic_visit(self, node: ast.AST) -> None:
        if not isinstance(node, _ALLOWED_NODES):
            self._reject(node, f"{type(node).__name__} is not allowed")
            return
        super().generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._reject(node, f"Forbidden name: {node.id!r}")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self._reject(node, f"Forbidden attribute: {node.attr!r}")
        if isinstance(node.ctx, ast.Store):
            self._reject(node, "Assigning to attributes is forbidden")
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if not isinstance(node.value, _CONSTANT_TYPES):
            self._reject(node, f"Forbidden constant type: {type(node.value).__name__}")

    def _check_arguments(self, node: ast.FunctionDef | ast.Lambda) -> None:
        args = node.args
        if args.vararg or args.kwarg:
            self._reject(node, "*args and **kwargs parameters are forbidden")
        if args.kwonlyargs or args.posonlyargs:
            self._reject(node, "Keyword-only and positional-only parameters are forbidden")
        for arg in args.args:
            if arg.annotation is not None:
                self._reject(node, "Parameter annotations are forbidden")

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if node.decorator_list:
            self._reject(node, "Decorators are forbidden")
        if node.returns is not None:
            self._reject(node, "Return annotations are forbidden")
        if getattr(node, "type_params", None):
            self._reject(node, "Type parameters are forbidden")
        if node.name.startswith("__"):
            self._reject(node, f"Forbidden function name: {node.name!r}")
        self._check_arguments(node)
        outer, self._loop_depth = self._loop_depth, 0
        self.generic_visit(node)
        self._loop_depth = outer

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._check_arguments(node)
        self.generic_visit(node)

    def _visit_loop(self, node: ast.For | ast.While, header: list[ast.AST]) -> None:
        for child in header:
            self.visit(child)
        self._loop_depth += 1
        for stmt in node.body:
            self.visit(stmt)
        self._loop_depth -= 1
        for stmt in node.orelse:
            self.visit(stmt)

    def visit_For(self, node: ast.For) -> None:
        self._visit_loop(node, [node.target, node.iter])

    def visit_While(self, node: ast.While) -> None:
        self._visit_loop(node, [node.test])

    def visit_Break(self, node: ast.Break) -> None:
        if not self._loop_depth:
            self._reject(node, "'break' outside loop")

    def visit_Continue(self, node: ast.Continue) -> None:
        if not self._loop_depth:
            self._reject(node, "'continue' outside loop")

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if not isinstance(node.target, (ast.Name, ast.Subscript)):
            self._reject(node, "Augmented assignment target must be a name or subscript")
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        for kw in node.keywords:
            if kw.arg is None:
                self._reject(node, "Keyword unpacking (**) is forbidden")
        self.generic_visit(node)

    def visit_Dict(self, node: ast.Dict) -> None:
        if any(key is None for key in node.keys):
            self._reject(node, "Dict unpacking (**) is forbidden")
        self.generic_visit(node)

    def visit_comprehension(self, node: ast.comprehension) -> None:
        if node.is_async:
            self._reject(node.target, "Async comprehensions are forbidden")
        self.generic_visit(node)


# ---------------------------------------------------------------------------
# Runtime values
# ---------------------------------------------------------------------------


class Namespace:
    """Read-only attribute namespace exposed to programs (``api.line``)."""

    __slots__ = ("name", "_members")

    def __init__(self, name: str, members: Mapping[str, Any]) -> None:
        self.name = name
        self._members = dict(members)

    def lookup(self, attr: str) -> Any:
        try:
            return self._members[attr]
        except KeyError:
            raise SandboxRuntimeError(f"{self.name} has no attribute {attr!r}") from None

    def __contains__(self, attr: object) -> bool:
        return attr in self._members

    def __repr__(self) -> str:
        return f"<namespace {self.name}>"


class SandboxFunction:
    """A ``def`` or ``lambda`` defined by a program.

    Instances are callable so host functions (``sorted(key=...)``) can
    call back into the program.
    """

    __slots__ = ("name", "params", "defaults", "body", "closure", "_interp")

    def __init__(
        self,
        name: str,
        params: list[str],
        defaults: list[Any],
        body: list[ast.stmt] | ast.expr,
        closure: list[dict[str, Any]],
        interp: _Interpreter,
    ) -> None:
        self.name = name
        self.params = params
        self.defaults = defaults
        self.body = body
        self.closure = closure
        self._interp = interp

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._interp.call_function(self, args, kwargs)

    def __repr__(self) -> str:
        return f"<function {self.name}>"


class _Return(Exception):
    def __init__(self, value: Any) -> None:
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class _Interpreter(ast.NodeVisitor):
    """AST visitor that executes a validated program."""

    def __init__(self, env: Mapping[str, Any], limits: SandboxLimits) -> None:
        self._limits = limits
        self._env = {**self._builtins(), **env}
        self._scopes: list[dict[str, Any]] = [{}]
        self.steps = 0
        self._depth = 0
        self._line = 0

    # -- budget -------------------------------------------------------------

    def _tick(self, cost: int = 1) -> None:
        self.steps += cost
        if self.steps > self._limits.max_steps:
            raise SandboxLimitError(f"line {self._line}: step budget of {self._limits.max_steps} exceeded")

    def _charge(self, value: Any) -> None:
        """Bill the step budget for each item a host call touched."""
        if isinstance(value, (str, list, tuple, dict, set, range)):
            self._check_size(value)
            self._tick(len(value))

    def _check_size(self, value: Any) -> None:
        if isinstance(value, (str, list, tuple, dict, set, range)):
            try:
                size = len(value)
            except OverflowError:
                size = self._limits.max_sequence + 1
            if size > self._limits.max_sequence:
                raise SandboxLimitError(
                    f"line {self._line}: sequence of {size} items exceeds limit of {self._limits.max_sequence}"
                )

    def _reserve(self, size: int) -> None:
        self._check_size(range(max(size, 0)))
        self._tick(max(size, 0))

    def _formatted_size(self, template: str, values: Any) -> int:
        """Upper bound on the length of ``template % values``, before formatting."""
        args = values if isinstance(values, tuple) else (values,)
        size = len(template)
        for match in _FORMAT_SPEC.finditer(template):
            for field in match.groups():
                if field == "*":
                    size += max((abs(a) for a in args if isinstance(a, int)), default=0)
                elif field:
                    size += int(field)
        for arg in args:
            if isinstance(arg, (str, list, tuple, dict, set)):
                size += len(arg)
        return size

    def _check_binop(self, op: ast.operator, left: Any, right: Any) -> None:
        ints = isinstance(left, int) and isinstance(right, int)
        if isinstance(op, ast.Pow) and ints and right > 0 and abs(left) > 1:
            if abs(left).bit_length() * right > MAX_INT_BITS:
                raise SandboxLimitError(f"line {self._line}: integer result too large")
        elif isinstance(op, ast.LShift) and ints and right > 0:
            if left.bit_length() + right > MAX_INT_BITS:
                raise SandboxLimitError(f"line {self._line}: integer result too large")
        elif isinstance(op, ast.Mult):
            if ints:
                if left.bit_length() + right.bit_length() > MAX_INT_BITS:
                    raise SandboxLimitError(f"line {self._line}: integer result too large")
            elif isinstance(left, int) and isinstance(right, (str, list, tuple)):
                self._reserve(len(right) * left)
            elif isinstance(right, int) and isinstance(left, (str, list, tuple)):
                self._reserve(len(left) * right)
        elif isinstance(op, ast.Add):
            if isinstance(left, (str, list, tuple)) and isinstance(right, (str, list, tuple)):
                self._reserve(len(left) + len(right))
        elif isinstance(op, ast.Mod) and isinstance(left, str):
            self._reserve(self._formatted_size(left, right))

    # -- builtins -----------------------------------------------------------

    def _consumer(self, fn: Callable[..., Any], materialize: bool = False) -> Callable[..., Any]:
        def wrapped(*args: Any, **kwargs: Any) -> Any:
            for arg in args:
                self._charge(arg)
            result = fn(*args, **kwargs)
            return list(result) if materialize else result

        wrapped.__name__ = fn.__name__
        return wrapped

    def _builtins(self) -> dict[str, Any]:
        return {
            "range": range,
            "len": len,
            "abs": abs,
            "round": round,
            "int": int,
            "float": float,
            "bool": bool,
            "min": self._consumer(min),
            "max": self._consumer(max),
            "sum": self._consumer(sum),
            "sorted": self._consumer(sorted),
            "list": self._consumer(list),
            "enumerate": self._consumer(enumerate, materialize=True),
            "zip": self._consumer(zip, materialize=True),
            "reversed": self._consumer(reversed, materialize=True),
        }

    def _list_method(self, target: list, attr: str) -> Any:
        if attr == "extend":
            def extend(items: Iterable[Any]) -> None:
                self._charge(items)
                self._check_size(range(len(target) + len(items)))
                target.extend(items)

            return extend
        if attr == "insert":
            def insert(index: int, item: Any) -> None:
                self._check_size(range(len(target) + 1))
                target.insert(index, item)

            return insert
        return getattr(target, attr)

    # -- entry points -------------------------------------------------------

    def run(self, tree: ast.Module) -> Any:
        try:
            self._exec_block(tree.body)
        except _Return as ret:
            return ret.value
        except RecursionError as exc:
            raise SandboxLimitError(f"line {self._line}: maximum nesting depth exceeded") from exc
        except MemoryError as exc:
            raise SandboxLimitError(f"line {self._line}: out of memory") from exc
        except (ArithmeticError, LookupError, TypeError, ValueError, AttributeError, RuntimeError) as exc:
            raise SandboxRuntimeError(f"line {self._line}: {type(exc).__name__}: {exc}") from exc
        return None

    def call_function(self, fn: SandboxFunction, args: tuple, kwargs: dict[str, Any]) -> Any:
        """Bind arguments and run ``fn`` in a fresh local scope."""
        params = fn.params
        if len(args) > len(params):
            raise SandboxRuntimeError(
                f"{fn.name}() takes {len(params)} positional arguments but {len(args)} were given"
            )
        frame = dict(zip(params, args))
        for key, value in kwargs.items():
            if key not in params:
                raise SandboxRuntimeError(f"{fn.name}() got an unexpected keyword argument {key!r}")
            if key in frame:
                raise SandboxRuntimeError(f"{fn.name}() got multiple values for argument {key!r}")
            frame[key] = value
        first_default = len(params) - len(fn.defaults)
        for index, name in enumerate(params):
            if name not in frame:
                if index < first_default:
                    raise SandboxRuntimeError(f"{fn.name}() missing required argument {name!r}")
                frame[name] = fn.defaults[index - first_default]

        if self._depth >= self._limits.max_depth:
            raise SandboxLimitError(f"line {self._line}: call depth limit of {self._limits.max_depth} exceeded")
        self._tick()
        saved = self._scopes
        self._scopes = [frame, *fn.closure]
        self._depth += 1
        try:
            if isinstance(fn.body, ast.expr):
                return self.visit(fn.body)
            try:
                self._exec_block(fn.body)
            except _Return as ret:
                return ret.value
            return None
        finally:
            self._depth -= 1
            self._scopes = saved

    # -- scopes -------------------------------------------------------------

    def _lookup(self, name: str) -> Any:
        for scope in self._scopes:
            if name in scope:
                return scope[name]
        if name in self._env:
            return self._env[name]
        raise SandboxRuntimeError(f"line {self._line}: name {name!r} is not defined")

    def _assign(self, target: ast.expr, value: Any) -> None:
        if isinstance(target, ast.Name):
            self._scopes[0][target.id] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            self._check_size(value)
            items = list(value)
            if len(items) != len(target.elts):
                raise SandboxRuntimeError(
                    f"line {self._line}: expected {len(target.elts)} values to unpack, got {len(items)}"
                )
            for elt, item in zip(target.elts, items):
                self._assign(elt, item)
        elif isinstance(target, ast.Subscript):
            container = self.visit(target.value)
            key = self.visit(target.slice)
            if isinstance(key, slice) and isinstance(container, list):
                self._check_size(value)
                self._check_size(range(len(container) + len(value)))
            container[key] = value
        else:
            raise SandboxSecurityError(f"line {self._line}: cannot assign to {type(target).__name__}")

    # -- statements ---------------------------------------------------------

    def _exec_block(self, body: list[ast.stmt]) -> None:
        for stmt in body:
            self._line = stmt.lineno
            self._tick()
            self.visit(stmt)

    def visit_Expr(self, node: ast.Expr) -> None:
        self.visit(node.value)

    def visit_Assign(self, node: ast.Assign) -> None:
        value = self.visit(node.value)
        for target in node.targets:
            self._assign(target, value)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        value = self.visit(node.value)
        if isinstance(node.target, ast.Name):
            current = self._lookup(node.target.id)
            self._scopes[0][node.target.id] = self._binop(node.op, current, value, inplace=True)
            return
        container = self.visit(node.target.value)
        key = self.visit(node.target.slice)
        container[key] = self._binop(node.op, container[key], value, inplace=True)

    def visit_If(self, node: ast.If) -> None:
        if self.visit(node.test):
            self._exec_block(node.body)
        else:
            self._exec_block(node.orelse)

    def visit_For(self, node: ast.For) -> None:
        iterable = self.visit(node.iter)
        for item in iterable:
            self._tick()
            self._assign(node.target, item)
            try:
                self._exec_block(node.body)
            except _Break:
                break
            except _Continue:
                continue
        else:
            self._exec_block(node.orelse)

    def visit_While(self, node: ast.While) -> None:
        while self.visit(node.test):
            self._tick()
            try:
                self._exec_block(node.body)
            except _Break:
                break
            except _Continue:
                continue
        else:
            self._exec_block(node.orelse)

    def visit_Break(self, node: ast.Break) -> None:
        raise _Break

    def visit_Continue(self, node: ast.Continue) -> None:
        raise _Continue

    def visit_Pass(self, node: ast.Pass) -> None:
        pass

    def visit_Return(self, node: ast.Return) -> None:
        raise _Return(self.visit(node.value) if node.value is not None else None)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._scopes[0][node.name] = self._make_function(node.name, node.args, node.body)

    def _make_function(
        self, name: str, args: ast.arguments, body: list[ast.stmt] | ast.expr
    ) -> SandboxFunction:
        defaults = [self.visit(d) for d in args.defaults]
        params = [a.arg for a in args.args]
        return SandboxFunction(name, params, defaults, body, list(self._scopes), self)

    # -- expressions --------------------------------------------------------

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        return self._lookup(node.id)

    def visit_List(self, node: ast.List) -> list:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Set(self, node: ast.Set) -> set:
        return {self.visit(elt) for elt in node.elts}

    def visit_Dict(self, node: ast.Dict) -> dict:
        return {self.visit(k): self.visit(v) for k, v in zip(node.keys, node.values)}

    def _binop(self, op: ast.operator, left: Any, right: Any, inplace: bool = False) -> Any:
        self._check_binop(op, left, right)
        table = _INPLACE_OPS if inplace else _BINARY_OPS
        return table[type(op)](left, right)

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        return self._binop(node.op, self.visit(node.left), self.visit(node.right))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return _UNARY_OPS[type(node.op)](self.visit(node.operand))

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result = None
        if isinstance(node.op, ast.And):
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not _COMPARISON_OPS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        if isinstance(value, Namespace):
            return value.lookup(node.attr)
        if isinstance(value, list) and node.attr in LIST_METHODS:
            return self._list_method(value, node.attr)
        if isinstance(value, dict) and node.attr in DICT_METHODS:
            return getattr(value, node.attr)
        raise SandboxRuntimeError(
            f"line {self._line}: {type(value).__name__!r} object has no accessible attribute {node.attr!r}"
        )

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        return self.visit(node.value)[self.visit(node.slice)]

    def visit_Slice(self, node: ast.Slice) -> slice:
        return slice(
            self.visit(node.lower) if node.lower is not None else None,
            self.visit(node.upper) if node.upper is not None else None,
            self.visit(node.step) if node.step is not None else None,
        )

    def visit_Call(self, node: ast.Call) -> Any:
        func = self.visit(node.func)
        args = [self.visit(arg) for arg in node.args]
        kwargs = {kw.arg: self.visit(kw.value) for kw in node.keywords}
        if isinstance(func, SandboxFunction):
            return self.call_function(func, tuple(args), kwargs)
        if not callable(func) or isinstance(func, Namespace):
            raise SandboxRuntimeError(f"line {self._line}: {type(func).__name__!r} object is not callable")
        self._tick()
        result = func(*args, **kwargs)
        if not isinstance(result, range):
            self._charge(result)
        return result

    def visit_Lambda(self, node: ast.Lambda) -> SandboxFunction:
        return self._make_function("<lambda>", node.args, node.body)

    def _comprehension(self, generators: list[ast.comprehension], emit: Callable[[], None]) -> None:
        saved = self._scopes
        self._scopes = [{}, *saved]
        try:
            self._generate(generators, 0, emit)
        finally:
            self._scopes = saved

    def _generate(self, generators: list[ast.comprehension], index: int, emit: Callable[[], None]) -> None:
        if index == len(generators):
            emit()
            return
        gen = generators[index]
        for item in self.visit(gen.iter):
            self._tick()
            self._assign(gen.target, item)
            if all(self.visit(cond) for cond in gen.ifs):
                self._generate(generators, index + 1, emit)

    def visit_ListComp(self, node: ast.ListComp) -> list:
        out: list = []
        self._comprehension(node.generators, lambda: out.append(self.visit(node.elt)))
        return out

    # Generator expressions are evaluated eagerly.
    visit_GeneratorExp = visit_ListComp

    def visit_SetComp(self, node: ast.SetComp) -> set:
        out: set = set()
        self._comprehension(node.generators, lambda: out.add(self.visit(node.elt)))
        return out

    def visit_DictComp(self, node: ast.DictComp) -> dict:
        out: dict = {}

        def emit() -> None:
            out[self.visit(node.key)] = self.visit(node.value)

        self._comprehension(node.generators, emit)
        return out

    def generic_visit(self, node: ast.AST) -> Any:
        # Unreachable for validated programs.
        raise SandboxSecurityError(f"{type(node).__name__} is not allowed")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class SandboxProgram:
    """User code parsed and validated once, runnable many times.

    Example::

        program = SandboxProgram("return [x * 2 for x in values]")
        program.run({"values": [1, 2, 3]})  # [2, 4, 6]
    """

    def __init__(self, source: str) -> None:
        """Parse and validate ``source``.

        Raises
        ------
        SandboxSyntaxError
            If the source is not valid Python.
        SandboxSecurityError
            If the source uses forbidden constructs.
        """
        self._source = source
        try:
            self._tree = ast.parse(source, mode="exec")
        except SyntaxError as exc:
            raise SandboxSyntaxError(f"line {exc.lineno}: {exc.msg}") from exc
        except (ValueError, RecursionError, MemoryError) as exc:
            raise SandboxSyntaxError(f"cannot parse program: {exc}") from exc

        validator = _ProgramValidator()
        try:
            validator.visit(self._tree)
        except RecursionError as exc:
            raise SandboxSyntaxError("program is nested too deeply") from exc
        if validator.errors:
            raise SandboxSecurityError("; ".join(validator.errors))

    @property
    def source(self) -> str:
        return self._source

    def run(self, env: Mapping[str, Any], limits: SandboxLimits | None = None) -> Any:
        """Execute the program and return the value of its ``return``.

        Parameters
        ----------
        env : Mapping[str, Any]
            Names the program may read besides its own variables and the
            safe builtins.
        limits : SandboxLimits, optional
            Step, depth and size budget; defaults apply when omitted.

        Raises
        ------
        SandboxRuntimeError
            If an operation fails.
        SandboxLimitError
            If the budget is exhausted.
        """
        interp = _Interpreter(env, limits or SandboxLimits())
        result = interp.run(self._tree)
        logger.debug("Program finished after %d steps", interp.steps)
        return result

    def __repr__(self) -> str:
        return f"SandboxProgram({self._source[:40]!r})"
