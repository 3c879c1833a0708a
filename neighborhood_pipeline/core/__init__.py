#!/usr/bin/env python3

"""
Core module for the neighborhood pipeline.

Contains the feature model, the feature index, exception types and
configuration management components.
"""

from .data_structures import (
    Feature, RegionBoundary, Neighborhood, Neighborhoods, OverlapRecord, FeatureKey, ReconcileResult,
    GroupAssignment, SimilarityEdge, Rule, region_boundary
)
from .exceptions import (
    PipelineError, ParseError, ValidationError, DuplicateFeatureError,
    EmptyNeighborhoodError, ConfigurationError, MemoryError
)
from .feature_index import FeatureIndex, build_index
from .config import PipelineConfig, load_config

__all__ = [
    'Feature', 'RegionBoundary', 'Neighborhood', 'Neighborhoods', 'OverlapRecord', 'FeatureKey', 'ReconcileResult',
    'GroupAssignment', 'SimilarityEdge', 'Rule', 'region_boundary',
    'PipelineError', 'ParseError', 'ValidationError', 'DuplicateFeatureError',
    'EmptyNeighborhoodError', 'ConfigurationError', 'MemoryError',
    'FeatureIndex', 'build_index',
    'PipelineConfig', 'load_config'
]
