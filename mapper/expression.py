"""
Activity mapper rule language.

Rules are small boolean expressions written by users, e.g.::

    event == "push" and metadata.repository ~= "^backend-"
    metadata.commits_1st.message ~= "ABC-[0-9]+" or artifact in ("task", "taskOrg")

Rules are parsed once into a tree of closures and evaluated against a plain record (a dict, or anything with
a ``to_dict()``). Symbols resolve through dict keys and list indices only, so a rule can not reach anything
outside the record it is evaluated against.

Evaluation never raises: a failure is returned as an EvaluationError instance, and a rule that failed to parse
returns its RuleSyntaxError on every call. Callers treat anything but ``True`` as "no match".
"""
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

# a path segment ending with this suffix takes the first element of the list found at the segment
FIRST_ITEM_SUFFIX = '_1st'

MAX_POWER_BITS = 1024

KEYWORDS = {'and', 'or', 'not', 'in', 'mod', 'if', 'then', 'else', 'true', 'false'}

_TOKEN_RE = re.compile(
    r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<quoted>'(?:[^'\\]|\\.)*')
    |(?P<name>[A-Za-z_$][A-Za-z0-9_$.]*)
    |(?P<op>==|!=|<=|>=|~=|[-+*/%^<>(),])
    """,
    re.VERBOSE,
)
_ESCAPE_RE = re.compile(r'\\(["\'\\])')

Token = Tuple[str, Any, int]
Evaluator = Callable[[Dict[str, Any]], Any]


class RuleSyntaxError(ValueError):
    """Raised by the parser; kept by the compiled expression and returned on each evaluation."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        super().__init__(message if position is None else f"{message} at position {position}")


class EvaluationError(Exception):
    """A rule evaluation failure. Returned to callers as a value, never raised past CompiledExpression."""


def _child(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    if isinstance(obj, (list, tuple)) and key.isdigit():
        idx = int(key)
        return obj[idx] if idx < len(obj) else None
    return None


def resolve_path(record: Any, name: str, quoted: bool = False) -> Any:
    """Resolve a dot-path against record, returning None at the first missing node.

    ``commits_1st`` means "element 0 of the non-empty list at ``commits``", None otherwise.
    A single-quoted symbol is looked up as one key, dots included.
    """
    if record is None:
        return None
    if quoted:
        return _child(record, name)
    obj = record
    for part in name.split('.'):
        if obj is None:
            return None
        if part.endswith(FIRST_ITEM_SUFFIX) and len(part) > len(FIRST_ITEM_SUFFIX):
            arr = _child(obj, part[:-len(FIRST_ITEM_SUFFIX)])
            if not isinstance(arr, list) or not arr:
                return None
            obj = arr[0]
        else:
            obj = _child(obj, part)
    return obj


# --- value semantics ---

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equals(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return a == b
    return type(a) is type(b) and a == b


def _ordered(op: str, a: Any, b: Any) -> bool:
    if not ((_is_number(a) and _is_number(b)) or (isinstance(a, str) and isinstance(b, str))):
        raise EvaluationError(f"cannot compare {type(a).__name__} {op} {type(b).__name__}")
    if op == '<':
        return a < b
    if op == '<=':
        return a <= b
    if op == '>':
        return a > b
    return a >= b


def regex_match(value: Any, pattern: Any) -> bool:
    """Case-insensitive search of pattern in value; a missing operand never matches."""
    if value is None or pattern is None:
        return False
    try:
        return re.search(str(pattern), str(value), re.IGNORECASE) is not None
    except re.error as ex:
        raise EvaluationError(f"invalid regular expression {pattern!r}: {ex}")


def _contains(container: Any, value: Any) -> bool:
    if isinstance(container, (list, tuple)):
        return any(_strict_equals(value, item) for item in container)
    if isinstance(container, str) and isinstance(value, str):
        return value in container
    if container is None:
        return False
    raise EvaluationError(f"'in' needs a list, got {type(container).__name__}")


def _numbers(op: str, a: Any, b: Any):
    if not (_is_number(a) and _is_number(b)):
        raise EvaluationError(f"operator {op} needs numbers, got {type(a).__name__} and {type(b).__name__}")


def _power(a: Any, b: Any) -> Any:
    # estimated size of the result in bits must stay under MAX_POWER_BITS
    if b > 0 and abs(a) > 1 and b * math.log2(abs(a)) > MAX_POWER_BITS:
        raise EvaluationError(f"result of {a} ^ {b} is too large")
    try:
        return a ** b
    except (OverflowError, ZeroDivisionError) as ex:
        raise EvaluationError(f"cannot compute {a} ^ {b}: {ex}")


def _arithmetic(op: str, a: Any, b: Any) -> Any:
    if op == '+' and isinstance(a, str) and isinstance(b, str):
        return a + b
    _numbers(op, a, b)
    if op == '+':
        return a + b
    if op == '-':
        return a - b
    if op == '*':
        return a * b
    if op == '/':
        if b == 0:
            raise EvaluationError('division by zero')
        return a / b
    if op in ('%', 'mod'):
        if b == 0:
            raise EvaluationError('modulo by zero')
        return a % b
    return _power(a, b)


def _empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def _string_fn(fn: Callable[[str], str]) -> Callable[[Any], Any]:
    def apply(value: Any) -> Any:
        return fn(value) if isinstance(value, str) else value
    return apply


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    'abs': abs,
    'ceil': math.ceil,
    'floor': math.floor,
    'log': math.log,
    'max': max,
    'min': min,
    'round': round,
    'sqrt': math.sqrt,
    'exists': lambda value: value is not None,
    'empty': _empty,
    'lower': _string_fn(str.lower),
    'upper': _string_fn(str.upper),
}


# --- tokenizer ---

def tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        if source[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(source, pos)
        if not m:
            raise RuleSyntaxError(f"unexpected character {source[pos]!r}", pos)
        kind = m.lastgroup
        text = m.group(kind)
        if kind == 'number':
            tokens.append(('number', float(text) if any(c in text for c in '.eE') else int(text), pos))
        elif kind in ('string', 'quoted'):
            tokens.append((kind, _ESCAPE_RE.sub(r'\1', text[1:-1]), pos))
        elif kind == 'name' and text in KEYWORDS:
            tokens.append(('kw', text, pos))
        else:
            tokens.append((kind, text, pos))
        pos = m.end()
    tokens.append(('end', None, length))
    return tokens


# --- parser: each rule builds a closure record -> value ---

class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def at(self, kind: str, value: Any = None, offset: int = 0) -> bool:
        tk, tv, _ = self.peek(offset)
        return tk == kind and (value is None or tv == value)

    def expect(self, kind: str, value: Any = None) -> Token:
        if not self.at(kind, value):
            tk, tv, pos = self.peek()
            wanted = value if value is not None else kind
            found = 'end of rule' if tk == 'end' else repr(tv)
            raise RuleSyntaxError(f"expected {wanted!r}, found {found}", pos)
        return self.advance()

    def parse(self) -> Evaluator:
        if self.at('end'):
            raise RuleSyntaxError('empty rule', 0)
        node = self.expression()
        self.expect('end')
        return node

    def expression(self) -> Evaluator:
        if self.at('kw', 'if'):
            self.advance()
            cond = self.expression()
            self.expect('kw', 'then')
            yes = self.expression()
            self.expect('kw', 'else')
            no = self.expression()
            return lambda r: yes(r) if cond(r) else no(r)
        return self.or_expr()

    def or_expr(self) -> Evaluator:
        left = self.and_expr()
        while self.at('kw', 'or'):
            self.advance()
            right = self.and_expr()
            left = (lambda a, b: lambda r: bool(a(r)) or bool(b(r)))(left, right)
        return left

    def and_expr(self) -> Evaluator:
        left = self.not_expr()
        while self.at('kw', 'and'):
            self.advance()
            right = self.not_expr()
            left = (lambda a, b: lambda r: bool(a(r)) and bool(b(r)))(left, right)
        return left

    def not_expr(self) -> Evaluator:
        if self.at('kw', 'not'):
            self.advance()
            operand = self.not_expr()
            return lambda r: not operand(r)
        return self.comparison()

    def comparison(self) -> Evaluator:
        left = self.additive()
        while True:
            if self.at('op') and self.peek()[1] in ('==', '!=', '<', '<=', '>', '>=', '~='):
                op = self.advance()[1]
                right = self.additive()
                left = self._compare(op, left, right)
            elif self.at('kw', 'in'):
                self.advance()
                right = self.membership_operand()
                left = (lambda a, b: lambda r: _contains(b(r), a(r)))(left, right)
            elif self.at('kw', 'not') and self.at('kw', 'in', offset=1):
                self.advance()
                self.advance()
                right = self.membership_operand()
                left = (lambda a, b: lambda r: not _contains(b(r), a(r)))(left, right)
            else:
                return left

    @staticmethod
    def _compare(op: str, left: Evaluator, right: Evaluator) -> Evaluator:
        if op == '==':
            return lambda r: _strict_equals(left(r), right(r))
        if op == '!=':
            return lambda r: not _strict_equals(left(r), right(r))
        if op == '~=':
            return lambda r: regex_match(left(r), right(r))
        return lambda r: _ordered(op, left(r), right(r))

    def membership_operand(self) -> Evaluator:
        if not self.at('op', '('):
            return self.additive()
        self.advance()
        items = [self.expression()]
        while self.at('op', ','):
            self.advance()
            items.append(self.expression())
        self.expect('op', ')')
        return lambda r: [item(r) for item in items]

    def additive(self) -> Evaluator:
        left = self.multiplicative()
        while self.at('op') and self.peek()[1] in ('+', '-'):
            op = self.advance()[1]
            right = self.multiplicative()
            left = (lambda o, a, b: lambda r: _arithmetic(o, a(r), b(r)))(op, left, right)
        return left

    def multiplicative(self) -> Evaluator:
        left = self.unary()
        while (self.at('op') and self.peek()[1] in ('*', '/', '%')) or self.at('kw', 'mod'):
            op = self.advance()[1]
            right = self.unary()
            left = (lambda o, a, b: lambda r: _arithmetic(o, a(r), b(r)))(op, left, right)
        return left

    def unary(self) -> Evaluator:
        if self.at('op', '-'):
            self.advance()
            operand = self.unary()
            return lambda r: _arithmetic('-', 0, operand(r))
        return self.power()

    def power(self) -> Evaluator:
        base = self.primary()
        if self.at('op', '^'):
            self.advance()
            exponent = self.unary()
            return lambda r: _arithmetic('^', base(r), exponent(r))
        return base

    def primary(self) -> Evaluator:
        kind, value, pos = self.advance()
        if kind in ('number', 'string'):
            return lambda r: value
        if kind == 'kw' and value in ('true', 'false'):
            constant = value == 'true'
            return lambda r: constant
        if kind == 'quoted':
            return lambda r: resolve_path(r, value, quoted=True)
        if kind == 'name':
            if self.at('op', '('):
                return self.call(value, pos)
            return lambda r: resolve_path(r, value)
        if kind == 'op' and value == '(':
            node = self.expression()
            self.expect('op', ')')
            return node
        found = 'end of rule' if kind == 'end' else repr(value)
        raise RuleSyntaxError(f"unexpected {found}", pos)

    def call(self, name: str, pos: int) -> Evaluator:
        fn = FUNCTIONS.get(name)
        if fn is None:
            raise RuleSyntaxError(f"unknown function {name!r}", pos)
        self.expect('op', '(')
        args: List[Evaluator] = []
        if not self.at('op', ')'):
            args.append(self.expression())
            while self.at('op', ','):
                self.advance()
                args.append(self.expression())
        self.expect('op', ')')
        return lambda r: fn(*[arg(r) for arg in args])


class CompiledExpression:
    """Callable rule. Returns the expression value, or an error instance instead of raising."""

    def __init__(self, source: str, evaluator: Optional[Evaluator] = None, error: Optional[RuleSyntaxError] = None):
        self.source = source
        self._evaluator = evaluator
        self.error = error

    @property
    def valid(self) -> bool:
        return self.error is None

    def __call__(self, record: Any) -> Any:
        if self.error is not None:
            return self.error
        if hasattr(record, 'to_dict'):
            record = record.to_dict()
        try:
            return self._evaluator(record)
        except EvaluationError as ex:
            return ex
        except Exception as ex:  # any runtime failure inside a rule is a non-match for that rule only
            return EvaluationError(f"{type(ex).__name__}: {ex}")

    def __repr__(self):
        return f"CompiledExpression({self.source!r}{'' if self.valid else ', invalid'})"


def parse(source: str) -> Evaluator:
    """Parse source into an evaluator; raises RuleSyntaxError."""
    return _Parser(tokenize(source or '')).parse()


def compile_expression(source: str) -> CompiledExpression:
    """Compile a rule. Never raises: syntax errors are kept on the returned expression."""
    try:
        return CompiledExpression(source, evaluator=parse(source))
    except RuleSyntaxError as ex:
        return CompiledExpression(source, error=ex)
    except RecursionError:
        return CompiledExpression(source, error=RuleSyntaxError('rule is nested too deeply'))
