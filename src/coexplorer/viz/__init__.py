"""
Co-expression table and scatter plot state.

Modules:
    data_store: Table mode filtering, sorting and auto-highlight
    plot_data: Expression/mutation/coverage join for the scatter plot
    controller: View-model wiring ranking, table and plot together
"""

from coexplorer.viz.data_store import CoExpressionDataStore, TableMode
from coexplorer.viz.plot_data import (
    PlotDataBuilder,
    PlotDataPromises,
    compute_plot_data,
    plot_data_to_dataframe,
)
from coexplorer.viz.controller import (
    CoExpressionViz,
    request_all_data_message,
    show_log_scale_controls,
)

__all__ = [
    'CoExpressionDataStore',
    'TableMode',
    'PlotDataBuilder',
    'PlotDataPromises',
    'compute_plot_data',
    'plot_data_to_dataframe',
    'CoExpressionViz',
    'request_all_data_message',
    'show_log_scale_controls',
]
