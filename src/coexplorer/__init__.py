"""
coexplorer - Co-expression ranking and plot preparation for cancer cohorts

Ranks every gene by its correlation with a reference gene, corrects the
p-values for multiple testing (Benjamini-Hochberg q-values), and joins
expression, mutation and coverage data for a highlighted gene pair into
scatter-plot-ready records.
"""

__version__ = "0.1.0"

from coexplorer.core.models import CoExpressionRow, CoExpressionWithQ, PlotDatum
from coexplorer.stats.fdr import calculate_q_values
from coexplorer.stats.ranking import rank_coexpressions
from coexplorer.viz.controller import CoExpressionViz

__all__ = [
    "CoExpressionRow",
    "CoExpressionWithQ",
    "PlotDatum",
    "calculate_q_values",
    "rank_coexpressions",
    "CoExpressionViz",
]
