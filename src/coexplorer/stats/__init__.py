"""
Statistics for co-expression ranking.

Exports:
- Benjamini-Hochberg q-values (FDR correction)
- P-value ranking of co-expression rows
"""

from .fdr import calculate_q_values
from .ranking import (
    rank_coexpressions,
    coexpressions_to_dataframe,
    CoExpressionRanking,
)

__all__ = [
    "calculate_q_values",
    "rank_coexpressions",
    "coexpressions_to_dataframe",
    "CoExpressionRanking",
]
