"""Upstream sources (cBioPortal) and tabular export."""

from coexplorer.io.cbioportal import (
    CBioPortalClient,
    Cohort,
    CoExpressionCaches,
    build_caches,
)
from coexplorer.io.writers import write_coexpression_table, write_plot_data

__all__ = [
    'CBioPortalClient',
    'Cohort',
    'CoExpressionCaches',
    'build_caches',
    'write_coexpression_table',
    'write_plot_data',
]
