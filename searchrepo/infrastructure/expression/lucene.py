"""Recursive-descent parser for Lucene-style query strings.

Supported syntax:

    value  field:value  field:"a phrase"  field:wild*card
    field:[low TO high]  field:{low TO high}  field:>=value  field:<value
    _exists_:field  _missing_:field
    a AND b  a OR b  a && b  a || b  NOT a  !a  -a  +a
    (a OR b)  field:(a OR b)

AND binds tighter than OR. Adjacent clauses without an operator are joined
by the default operator; `+` and `-` clauses are always ANDed.
"""

from typing import NoReturn

from searchrepo.domain.query.model.expression import (
    BoolOperator,
    ExistsNode,
    ExpressionNode,
    GroupNode,
    MissingNode,
    NotNode,
    RangeNode,
    TermNode,
)
from searchrepo.domain.shared.error import QueryValidationError

MAX_DEPTH = 100
_TERM_STOP = set(" \t\r\n()[]{}:\"")
_KEYWORDS = {
    "AND": BoolOperator.AND,
    "&&": BoolOperator.AND,
    "OR": BoolOperator.OR,
    "||": BoolOperator.OR,
}


class LuceneExpressionParser:
    """ExpressionParser for Lucene query-string syntax. Stateless and reusable."""

    def parse(self, expression: str, default_operator: BoolOperator = BoolOperator.AND) -> ExpressionNode:
        if not expression or not expression.strip():
            raise QueryValidationError("Expression is empty", expression=expression, position=0)
        return _Parser(expression, default_operator).parse()


class _Parser:
    def __init__(self, text: str, default_operator: BoolOperator) -> None:
        self.text = text
        self.pos = 0
        self.default_operator = default_operator
        self.depth = 0

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def parse(self) -> ExpressionNode:
        node = self._sequence()
        self._skip_whitespace()
        if not self._at_end():
            self._fail(f"Unexpected '{self._peek()}'")
        return node

    def _sequence(self) -> ExpressionNode:
        """Clauses up to end of input or a closing parenthesis."""
        clauses: list[ExpressionNode] = []
        operators: list[BoolOperator] = []

        while True:
            self._skip_whitespace()
            if self._at_end() or self._peek() == ")":
                break

            operator = self._keyword_operator() if clauses else None
            if operator is None and not clauses and self._word() in _KEYWORDS:
                self._fail(f"Expression cannot start with {self._word()}")

            self._skip_whitespace()
            if self._at_end() or self._peek() == ")":
                self._fail("Expected a clause after operator")

            clause, forced = self._clause()
            if clauses:
                operators.append(operator or (BoolOperator.AND if forced else self.default_operator))
            clauses.append(clause)

        if not clauses:
            self._fail("Expected a clause")
        return _combine(clauses, operators)

    def _clause(self) -> tuple[ExpressionNode, bool]:
        """One clause and whether a +/- modifier forces it into the conjunction."""
        char = self._peek()
        if char == "+":
            self.pos += 1
            return self._primary(), True
        if char == "-" or char == "!":
            self.pos += 1
            return NotNode(self._primary()), True
        if self._word() == "NOT":
            self.pos += 3
            self._skip_whitespace()
            return NotNode(self._primary()), False
        return self._primary(), False

    def _primary(self, field: str | None = None) -> ExpressionNode:
        self._skip_whitespace()
        if self._at_end():
            self._fail("Unexpected end of expression")

        char = self._peek()
        if char == "(":
            return self._group(field)
        if char == '"':
            return TermNode(self._phrase(), field=field, phrase=True)
        if char in "[{":
            if field is None:
                self._fail("Range requires a field")
            return self._range(field)
        if char in "><" and field is not None:
            return self._comparison(field)

        start = self.pos
        value = self._bare()
        if not value:
            self._fail(f"Unexpected '{char}'")

        if field is None and self._peek() == ":":
            self.pos += 1
            if value == "_exists_":
                return ExistsNode(self._field_name())
            if value == "_missing_":
                return MissingNode(self._field_name())
            if self._at_end() or self._peek() in " \t\r\n":
                self.pos = start
                self._fail(f"Missing value for field '{value}'")
            return self._primary(field=value)

        return TermNode(value, field=field)

    def _group(self, field: str | None) -> ExpressionNode:
        self._expect("(")
        if self.depth >= MAX_DEPTH:
            self._fail(f"Expression nested deeper than {MAX_DEPTH} groups")
        self.depth += 1
        node = self._sequence()
        self.depth -= 1
        self._expect(")")
        if field is None:
            return node
        if isinstance(node, GroupNode):
            return GroupNode(node.children, node.operator, field=field)
        return GroupNode((node,), BoolOperator.AND, field=field)

    def _range(self, field: str) -> RangeNode:
        include_low = self._peek() == "["
        self.pos += 1
        self._skip_whitespace()
        low = self._range_bound()
        self._skip_whitespace()
        if self._word() != "TO":
            self._fail("Expected TO in range")
        self.pos += 2
        self._skip_whitespace()
        high = self._range_bound()
        self._skip_whitespace()

        close = self._peek()
        if close not in ("]", "}"):
            self._fail("Unterminated range")
        self.pos += 1
        return RangeNode(
            field=field,
            low=None if low == "*" else low,
            high=None if high == "*" else high,
            include_low=include_low,
            include_high=close == "]",
        )

    def _range_bound(self) -> str:
        if self._peek() == '"':
            return self._phrase()
        start = self.pos
        while not self._at_end() and self._peek() not in " \t\r\n]}":
            self.pos += 1
        if self.pos == start:
            self._fail("Expected range bound")
        return self.text[start : self.pos]

    def _comparison(self, field: str) -> RangeNode:
        operator = self._peek()
        self.pos += 1
        inclusive = self._peek() == "="
        if inclusive:
            self.pos += 1
        value = self._phrase() if self._peek() == '"' else self._bare()
        if not value:
            self._fail(f"Missing value after '{operator}'")
        if operator == ">":
            return RangeNode(field=field, low=value, include_low=inclusive)
        return RangeNode(field=field, high=value, include_high=inclusive)

    # -------------------------------------------------------------------------
    # Lexing
    # -------------------------------------------------------------------------

    def _keyword_operator(self) -> BoolOperator | None:
        word = self._word()
        if word in _KEYWORDS:
            self.pos += len(word)
            return _KEYWORDS[word]
        return None

    def _word(self) -> str:
        """Next whitespace- or paren-delimited word, without consuming it."""
        end = self.pos
        while end < len(self.text) and self.text[end] not in " \t\r\n()":
            end += 1
        return self.text[self.pos : end]

    def _bare(self) -> str:
        chars = []
        while not self._at_end():
            char = self._peek()
            if char == "\\":
                if self.pos + 1 >= len(self.text):
                    self._fail("Dangling escape")
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char in _TERM_STOP:
                break
            chars.append(char)
            self.pos += 1
        return "".join(chars)

    def _phrase(self) -> str:
        start = self.pos
        self._expect('"')
        chars = []
        while not self._at_end():
            char = self._peek()
            if char == "\\" and self.pos + 1 < len(self.text):
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char == '"':
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        self.pos = start
        self._fail("Unterminated phrase")

    def _field_name(self) -> str:
        name = self._bare()
        if not name:
            self._fail("Expected field name")
        return name

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self.text[self.pos].isspace():
            self.pos += 1

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            found = "end of expression" if self._at_end() else f"'{self._peek()}'"
            self._fail(f"Expected '{char}', found {found}")
        self.pos += 1

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _fail(self, message: str) -> NoReturn:
        raise QueryValidationError(f"{message} at position {self.pos}", expression=self.text, position=self.pos)


def _combine(clauses: list[ExpressionNode], operators: list[BoolOperator]) -> ExpressionNode:
    """Fold a flat clause list into OR-of-ANDs."""
    disjuncts: list[list[ExpressionNode]] = [[clauses[0]]]
    for operator, clause in zip(operators, clauses[1:]):
        if operator is BoolOperator.OR:
            disjuncts.append([clause])
        else:
            disjuncts[-1].append(clause)

    conjunctions = [
        group[0] if len(group) == 1 else GroupNode(tuple(group), BoolOperator.AND) for group in disjuncts
    ]
    if len(conjunctions) == 1:
        return conjunctions[0]
    return GroupNode(tuple(conjunctions), BoolOperator.OR)
