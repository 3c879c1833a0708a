#!/usr/bin/env python3

"""
Genomic Neighborhood Pipeline

Builds neighborhoods of co-located genomic features, reconciles independently
predicted gene sets and post-processes element clusters for a mobile-element
annotation workflow.

Modules:
- core: Feature model, feature index, processors, parsers and configuration
- utils: Performance monitoring
- tests: Unit test suite
"""

__version__ = "1.1.0"
__author__ = "Neighborhood Pipeline Team"

# Import main components for easy access
from .core.data_structures import (
    Feature, RegionBoundary, Neighborhood, Neighborhoods, OverlapRecord, FeatureKey, ReconcileResult,
    GroupAssignment, SimilarityEdge, Rule, region_boundary
)
from .core.exceptions import (
    PipelineError, ParseError, ValidationError, DuplicateFeatureError,
    EmptyNeighborhoodError, ConfigurationError, MemoryError
)
from .core.feature_index import FeatureIndex, build_index
from .core.processors import (
    NeighborhoodMerger, NeighborhoodPopulator, OverlapReconciler,
    GroupPostProcessor, RuleFilter
)
from .core.config import PipelineConfig, load_config
from .core.pipeline import NeighborhoodPipeline

__all__ = [
    # Main pipeline
    'NeighborhoodPipeline',
    # Data structures
    'Feature', 'RegionBoundary', 'Neighborhood', 'Neighborhoods', 'OverlapRecord', 'FeatureKey', 'ReconcileResult',
    'GroupAssignment', 'SimilarityEdge', 'Rule', 'region_boundary',
    'FeatureIndex', 'build_index',
    # Processors
    'NeighborhoodMerger', 'NeighborhoodPopulator', 'OverlapReconciler',
    'GroupPostProcessor', 'RuleFilter',
    # Exceptions
    'PipelineError', 'ParseError', 'ValidationError', 'DuplicateFeatureError',
    'EmptyNeighborhoodError', 'ConfigurationError', 'MemoryError',
    # Configuration
    'PipelineConfig', 'load_config'
]
