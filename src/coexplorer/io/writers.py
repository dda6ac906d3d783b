"""
TSV export of ranked co-expressions and scatter plot data.

Both writers go through pandas and an atomic rename, so a reader never sees
a half-written table.

Examples:
    >>> from pathlib import Path
    >>> from coexplorer.io.writers import write_coexpression_table
    >>>
    >>> write_coexpression_table(viz.data_store.visible_rows(), Path("TP53_coexpression.tsv"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from coexplorer.core.models import CoExpressionWithQ, PlotDatum
from coexplorer.stats.ranking import coexpressions_to_dataframe
from coexplorer.utils.fileio import write_tsv
from coexplorer.viz.plot_data import plot_data_to_dataframe

logger = logging.getLogger(__name__)

__all__ = ['write_coexpression_table', 'write_plot_data']


def write_coexpression_table(rows: Sequence[CoExpressionWithQ], path: Path) -> None:
    """
    Write ranked rows as TSV, in the order given.

    Columns: entrez_gene_id, hugo_gene_symbol, spearmans_correlation,
    p_value, q_value.
    """
    df = coexpressions_to_dataframe(rows)
    write_tsv(df, path)
    logger.info(f"Wrote {len(df)} co-expressions to {path}")


def write_plot_data(plot_data: Sequence[PlotDatum], path: Path) -> None:
    """Write scatter points as TSV; missing mutation fields are left empty."""
    df = plot_data_to_dataframe(plot_data)
    write_tsv(df, path)
    logger.info(f"Wrote {len(df)} plot points to {path}")
