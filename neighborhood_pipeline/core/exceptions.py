#!/usr/bin/env python3

"""
Custom exceptions for the neighborhood pipeline.

Provides specific exception types so structural invariant violations,
input problems and configuration mistakes can be told apart by callers.
"""

class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""
    pass


class ParseError(PipelineError):
    """Error occurred during file parsing."""
    
    def __init__(self, message: str, filename: str = "", line_number: int = 0):
        super().__init__(message)
        self.filename = filename
        self.line_number = line_number
    
    def __str__(self):
        if self.filename and self.line_number:
            return f"Parse error in {self.filename} at line {self.line_number}: {super().__str__()}"
        elif self.filename:
            return f"Parse error in {self.filename}: {super().__str__()}"
        return super().__str__()


class ValidationError(PipelineError):
    """Structural precondition of an input collection was not met."""
    
    def __init__(self, message: str, contig_id: str = "", feature_id: str = ""):
        super().__init__(message)
        self.contig_id = contig_id
        self.feature_id = feature_id
    
    def __str__(self):
        if self.contig_id and self.feature_id:
            return f"Validation error for {self.feature_id} on {self.contig_id}: {super().__str__()}"
        elif self.contig_id:
            return f"Validation error on contig {self.contig_id}: {super().__str__()}"
        elif self.feature_id:
            return f"Validation error for feature {self.feature_id}: {super().__str__()}"
        return super().__str__()


class DuplicateFeatureError(ValidationError):
    """Two features on the same contig share one identifier."""

    def __init__(self, contig_id: str, feature_id: str):
        super().__init__("duplicate feature identifier", contig_id, feature_id)


class EmptyNeighborhoodError(PipelineError):
    """A boundary was requested for a region without members."""

    def __init__(self, neighborhood_id: str = ""):
        super().__init__("cannot compute boundary of an empty region")
        self.neighborhood_id = neighborhood_id

    def __str__(self):
        if self.neighborhood_id:
            return f"Neighborhood {self.neighborhood_id}: {super().__str__()}"
        return super().__str__()


class ConfigurationError(PipelineError):
    """Error in pipeline configuration."""
    pass


class MemoryError(PipelineError):
    """Memory usage exceeded limits."""
    
    def __init__(self, message: str, current_usage: float, limit: float):
        super().__init__(message)
        self.current_usage = current_usage
        self.limit = limit
    
    def __str__(self):
        return f"Memory error: {super().__str__()} (current: {self.current_usage:.1f}MB, limit: {self.limit:.1f}MB)"
