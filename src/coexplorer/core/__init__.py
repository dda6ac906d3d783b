"""Core data model and dependency-tracking primitives."""

from coexplorer.core.models import (
    Gene,
    MolecularProfile,
    CoExpressionRow,
    CoExpressionWithQ,
    DataScope,
    CoExpressionKey,
    NumericGeneMolecularData,
    Mutation,
    GenePanelData,
    SampleCoverage,
    CoverageInformation,
    MutationStatus,
    PlotDatum,
)
from coexplorer.core.reactive import (
    Observable,
    Computed,
    Reaction,
    autorun,
    transaction,
    untracked,
)

__all__ = [
    # Data model
    'Gene',
    'MolecularProfile',
    'CoExpressionRow',
    'CoExpressionWithQ',
    'DataScope',
    'CoExpressionKey',
    'NumericGeneMolecularData',
    'Mutation',
    'GenePanelData',
    'SampleCoverage',
    'CoverageInformation',
    'MutationStatus',
    'PlotDatum',
    # Reactive primitives
    'Observable',
    'Computed',
    'Reaction',
    'autorun',
    'transaction',
    'untracked',
]
