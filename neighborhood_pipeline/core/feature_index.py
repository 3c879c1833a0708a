#!/usr/bin/env python3

"""
Per-contig, coordinate-ordered index over genomic features.

The index is built once and treated as read-only afterwards, so it can be
shared between workers that process disjoint contigs.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional

from intervaltree import IntervalTree

from .data_structures import Feature
from .exceptions import DuplicateFeatureError, ValidationError


class FeatureIndex:
    """Features grouped by contig and ordered by (begin, feature ID)."""

    def __init__(self, features: Iterable[Feature] = ()):
        by_contig: Dict[str, Dict[str, Feature]] = defaultdict(dict)
        for feature in features:
            contig = by_contig[feature.contig_id]
            if feature.feature_id in contig:
                raise DuplicateFeatureError(feature.contig_id, feature.feature_id)
            contig[feature.feature_id] = feature

        self._ordered: Dict[str, List[Feature]] = {}
        self._by_id: Dict[str, Dict[str, Feature]] = {}
        self._trees: Dict[str, IntervalTree] = {}

        for contig_id, contig in by_contig.items():
            ordered = sorted(contig.values(), key=lambda f: (f.begin, f.feature_id))
            self._ordered[contig_id] = ordered
            self._by_id[contig_id] = contig
            # intervaltree intervals are half-open
            tree = IntervalTree()
            for feature in ordered:
                tree.addi(feature.begin, feature.end + 1, feature)
            self._trees[contig_id] = tree

    @classmethod
    def build(cls, *sources: Iterable[Feature]) -> 'FeatureIndex':
        """Build one index from several parsed collections."""
        features = [feature for source in sources for feature in source]
        index = cls(features)
        logging.debug(f"Indexed {len(index)} features on {len(index.contigs)} contigs")
        return index

    def __len__(self) -> int:
        return sum(len(features) for features in self._ordered.values())

    def __iter__(self) -> Iterator[Feature]:
        """All features, contigs in lexicographic order."""
        for contig_id in self.contigs:
            yield from self._ordered[contig_id]

    def __contains__(self, contig_id: str) -> bool:
        return contig_id in self._ordered

    @property
    def contigs(self) -> List[str]:
        """Contig IDs in lexicographic order."""
        return sorted(self._ordered)

    def features(self, contig_id: str) -> List[Feature]:
        """Features of one contig ordered by begin, ties broken by feature ID."""
        return list(self._ordered.get(contig_id, ()))

    def require_contig(self, contig_id: str) -> List[Feature]:
        """Features of a contig that must be present in the index."""
        if contig_id not in self._ordered:
            raise ValidationError("contig is not present in the feature index", contig_id)
        return self.features(contig_id)

    def get(self, contig_id: str, feature_id: str) -> Optional[Feature]:
        return self._by_id.get(contig_id, {}).get(feature_id)

    def find(self, feature_id: str) -> List[Feature]:
        """Every feature carrying the ID, across contigs in lexicographic order."""
        return [self._by_id[c][feature_id] for c in self.contigs if feature_id in self._by_id[c]]

    def overlapping(self, contig_id: str, begin: int, end: int) -> List[Feature]:
        """Features sharing at least one base with ``[begin, end]``."""
        tree = self._trees.get(contig_id)
        if tree is None or end < begin:
            return []
        hits = [interval.data for interval in tree.overlap(begin, end + 1)]
        return sorted(hits, key=lambda f: (f.begin, f.feature_id))


def build_index(*sources: Iterable[Feature]) -> FeatureIndex:
    """Build a FeatureIndex from one or more parsed feature collections."""
    return FeatureIndex.build(*sources)
