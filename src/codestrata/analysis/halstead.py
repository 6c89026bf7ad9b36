"""Halstead volume and maintainability index."""

import math
import re
from dataclasses import dataclass

TOKEN_PATTERN = re.compile(r"[a-zA-Z_]\w*|[+\-*/=<>!&|]+")
OPERATOR_PATTERN = re.compile(r"[+\-*/=<>!&|]+")


@dataclass
class HalsteadCounts:
    """Operator/operand counts over a token split.

    Attributes:
        distinct_operators: n1
        distinct_operands: n2
        total_operators: N1
        total_operands: N2
    """

    distinct_operators: int = 0
    distinct_operands: int = 0
    total_operators: int = 0
    total_operands: int = 0

    @property
    def vocabulary(self) -> int:
        return self.distinct_operators + self.distinct_operands

    @property
    def length(self) -> int:
        return self.total_operators + self.total_operands

    @property
    def volume(self) -> float:
        """(N1 + N2) * log2(n1 + n2), 0 for an empty vocabulary."""
        if self.vocabulary == 0:
            return 0.0
        return self.length * math.log2(self.vocabulary)


def count_tokens(source: str) -> HalsteadCounts:
    """Split source into identifier operands and symbolic operators."""
    operators: set[str] = set()
    operands: set[str] = set()
    counts = HalsteadCounts()

    for token in TOKEN_PATTERN.findall(source):
        if OPERATOR_PATTERN.fullmatch(token):
            operators.add(token)
            counts.total_operators += 1
        else:
            operands.add(token)
            counts.total_operands += 1

    counts.distinct_operators = len(operators)
    counts.distinct_operands = len(operands)
    return counts


def halstead_volume(source: str) -> float:
    return count_tokens(source).volume


def _safe_log(value: float) -> float:
    # ln of a non-positive volume or line count contributes nothing
    return math.log(value) if value > 0 else 0.0


def maintainability_index(volume: float, cyclomatic: float, lines: int) -> float:
    """Classic maintainability index, rescaled to [0, 100].

    Args:
        volume: Halstead volume
        cyclomatic: Cyclomatic complexity
        lines: Line count

    Returns:
        max(0, (171 - 5.2 ln V - 0.23 G - 16.2 ln L) * 100 / 171), capped at 100
    """
    raw = 171 - 5.2 * _safe_log(volume) - 0.23 * cyclomatic - 16.2 * _safe_log(lines)
    return max(0.0, min(100.0, raw * 100 / 171))
