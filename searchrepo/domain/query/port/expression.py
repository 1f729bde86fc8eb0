from typing import Protocol

from searchrepo.domain.query.model.expression import BoolOperator, ExpressionNode


class ExpressionParser(Protocol):
    """Parses query-string expressions into syntax trees."""

    def parse(self, expression: str, default_operator: BoolOperator = BoolOperator.AND) -> ExpressionNode:
        """Parse an expression.

        Raises:
            QueryValidationError: If the expression is malformed.
        """
        ...
