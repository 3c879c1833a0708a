#!/usr/bin/env python3

"""
Test suite for the neighborhood pipeline.

Unit tests covering:
- Feature model, region boundaries and the feature index
- Neighborhood merging, population and rule filtering
- Overlap reconciliation and identifier conflicts
- Group assignment and similarity edges
- Parsing, output round trips and configuration
"""
