#!/usr/bin/env python3

"""
Processing classes for neighborhood construction, overlap reconciliation
and group post-processing.

All processors are stateless between calls: counters are passed in and
returned explicitly, and input indexes are never modified.
"""

import logging
from collections import defaultdict, OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from natsort import natsorted

from .data_structures import (
    Feature, FeatureKey, GroupAssignment, Neighborhood, Neighborhoods, OverlapRecord, ReconcileResult,
    Rule, SimilarityEdge, region_boundary
)
from .exceptions import ValidationError
from .feature_index import FeatureIndex
from .identifiers import (
    format_group_id, format_neighborhood_id, genome_from_id, qualify_id
)


class NeighborhoodMerger:
    """Group seed features lying within a merge distance into neighborhoods."""

    def __init__(self, separator: str, merge_distance: int = 0, tag: str = "nbhd"):
        if merge_distance < 0:
            raise ValueError(f"Invalid merge distance: {merge_distance}")
        self.separator = separator
        self.merge_distance = merge_distance
        self.tag = tag

    def merge(self, seed_ids: Iterable[str], index: FeatureIndex,
              first_counter: int = 1) -> Neighborhoods:
        """
        Merge seeds into neighborhoods, contig by contig.

        Contigs are walked in lexicographic order and seeds within a contig by
        begin coordinate. A seed opens a new neighborhood when the gap to the
        open neighborhood's end is at least the merge distance.

        Args:
            seed_ids: Feature IDs of the seeds
            index: Index holding the seed features
            first_counter: Number given to the first neighborhood

        Returns:
            Neighborhoods; ``next_counter`` holds the number for the next call
        """
        seed_ids = set(seed_ids)
        seeds = [f for f in index if f.feature_id in seed_ids]

        missing = seed_ids - {f.feature_id for f in seeds}
        if missing:
            logging.debug(f"{len(missing)} seed IDs not present in the feature index")

        hoods = self.merge_groups([[seed] for seed in seeds], first_counter)
        logging.info(f"Merged {len(seeds)} seeds into {len(hoods)} neighborhoods "
                     f"(merge distance {self.merge_distance} bp)")
        return hoods

    def merge_groups(self, groups: Iterable[Sequence[Feature]], first_counter: int = 1) -> Neighborhoods:
        """
        Merge groups of co-located features with the seed merge walk.

        Each group is placed by its span; a single seed is a group of one.
        Groups sharing a feature end up in one neighborhood.
        """
        by_contig: Dict[str, List[Tuple[int, str, int, Sequence[Feature]]]] = defaultdict(list)
        for group in groups:
            if not group:
                continue
            span = region_boundary(group)
            first_id = min(f.feature_id for f in group)
            by_contig[span.contig_id].append((span.begin, first_id, span.end, group))

        hoods = Neighborhoods(self.tag, self.merge_distance, first_counter)
        counter = first_counter

        for contig_id in sorted(by_contig):
            genome_id = genome_from_id(contig_id, self.separator)
            current: Optional[Neighborhood] = None
            current_end = 0

            for begin, _first_id, end, group in sorted(by_contig[contig_id], key=lambda g: g[:2]):
                if current is None or begin - current_end - 1 >= self.merge_distance:
                    if current is not None:
                        hoods.add(current)
                    current = Neighborhood(
                        format_neighborhood_id(genome_id, self.separator, self.tag, counter),
                        contig_id
                    )
                    counter += 1
                    current_end = end
                else:
                    current_end = max(current_end, end)
                for feature in group:
                    current.add_feature(feature)

            hoods.add(current)

        hoods.next_counter = counter
        return hoods


class NeighborhoodPopulator:
    """Expand neighborhoods by a flank and absorb every feature they touch."""

    def __init__(self, separator: str, flank: int = 0):
        if flank < 0:
            raise ValueError(f"Invalid flank: {flank}")
        self.separator = separator
        self.flank = flank

    def populate(self, neighborhoods: Neighborhoods, index: FeatureIndex) -> Neighborhoods:
        """
        Populate neighborhoods with all features inside their flanked windows.

        With a positive flank, a second merge pass over the populated
        neighborhoods fuses those whose windows now share content. The merge pass
        reuses the tag, merge distance and first counter of the input.
        """
        if self.flank == 0:
            logging.info("Flank is 0 bp, neighborhoods left as merged")
            return self._copy(neighborhoods)

        populated = Neighborhoods(neighborhoods.tag, neighborhoods.merge_distance,
                                  neighborhoods.first_counter)
        for hood in neighborhoods:
            boundary = hood.boundary()
            window_begin = max(0, boundary.begin - self.flank)
            window_end = boundary.end + self.flank

            if hood.contig_id not in index:
                raise ValidationError("contig is not present in the feature index", hood.contig_id)
            expanded = Neighborhood(hood.neighborhood_id, hood.contig_id)
            for feature in index.overlapping(hood.contig_id, window_begin, window_end):
                if self.in_window(feature, window_begin, window_end):
                    expanded.add_feature(feature)
            populated.add(expanded)
            logging.debug(f"{hood.neighborhood_id}: {len(hood)} -> {len(expanded)} features "
                          f"in window {window_begin}-{window_end}")

        merger = NeighborhoodMerger(self.separator, neighborhoods.merge_distance, neighborhoods.tag)
        remerged = merger.merge_groups([hood.features for hood in populated], neighborhoods.first_counter)
        logging.info(f"Populated {len(neighborhoods)} neighborhoods with {self.flank} bp flanks; "
                     f"{len(remerged)} remain after re-merging")
        return remerged

    @staticmethod
    def in_window(feature: Feature, window_begin: int, window_end: int) -> bool:
        """Feature is contained in, or straddles either edge of, the window."""
        b, e = feature.begin, feature.end
        contained = b >= window_begin and e <= window_end
        straddles_begin = b <= window_begin and e >= window_begin
        straddles_end = b <= window_end and e >= window_end
        return contained or straddles_begin or straddles_end

    @staticmethod
    def _copy(neighborhoods: Neighborhoods) -> Neighborhoods:
        copied = Neighborhoods(neighborhoods.tag, neighborhoods.merge_distance,
                               neighborhoods.first_counter)
        copied.next_counter = neighborhoods.next_counter
        for hood in neighborhoods:
            duplicate = Neighborhood(hood.neighborhood_id, hood.contig_id)
            for feature in hood.features:
                duplicate.add_feature(feature)
            copied.add(duplicate)
        return copied


class RuleFilter:
    """Keep neighborhoods whose member tags satisfy at least one rule."""

    def __init__(self, rules: Sequence[Rule]):
        self.rules = list(rules)

    def neighborhood_tags(self, hood: Neighborhood, tags: Dict[FeatureKey, Set[str]]) -> Set[str]:
        collected: Set[str] = set()
        for feature in hood.features:
            collected.update(tags.get(feature.key, ()))
        return collected

    def filter(self, neighborhoods: Neighborhoods, tags: Dict[FeatureKey, Set[str]]) -> Neighborhoods:
        kept = Neighborhoods(neighborhoods.tag, neighborhoods.merge_distance,
                             neighborhoods.first_counter)
        kept.next_counter = neighborhoods.next_counter
        for hood in neighborhoods:
            hood_tags = self.neighborhood_tags(hood, tags)
            if not self.rules or any(rule.accepts(hood_tags) for rule in self.rules):
                kept.add(hood)
            else:
                logging.debug(f"{hood.neighborhood_id} rejected by all rules (tags: {sorted(hood_tags)})")
        logging.info(f"{len(kept)}/{len(neighborhoods)} neighborhoods passed rule filtering")
        return kept


def summarize_occupancy(neighborhoods: Neighborhoods, tags: Dict[FeatureKey, Set[str]],
                        annotations: Dict[str, List[str]]) -> Tuple[List[str], List[Dict]]:
    """
    Build one occupancy row per neighborhood.

    Returns:
        Tuple of (tag columns in sorted order, rows). Each row holds the
        neighborhood ID, a member count per tag, ``size.bp``, ``size.genes``,
        ``distinctAnnotations`` and ``annotationCoverage``.
    """
    columns = sorted({tag for hood in neighborhoods for feature in hood.features
                      for tag in tags.get(feature.key, ())})
    rows = []
    for hood in neighborhoods:
        boundary = hood.boundary()
        counts = {tag: 0 for tag in columns}
        distinct = set()
        annotated = 0
        for feature in hood.features:
            for tag in tags.get(feature.key, ()):
                counts[tag] += 1
            values = [v for v in annotations.get(feature.feature_id, ()) if v]
            if values:
                annotated += 1
                distinct.update(values)
        rows.append({
            'neighborhoodID': hood.neighborhood_id,
            'tags': counts,
            'size.bp': boundary.size_bp,
            'size.genes': boundary.count,
            'distinctAnnotations': len(distinct),
            'annotationCoverage': annotated / boundary.count,
        })
    return columns, rows


class OverlapReconciler:
    """Merge newly predicted features into an existing annotation."""

    def __init__(self, separator: str):
        self.separator = separator

    def intersect(self, new_features: FeatureIndex, old_features: FeatureIndex) -> OverlapRecord:
        """Old feature IDs overlapping each new feature on the same contig."""
        overlaps: OverlapRecord = OrderedDict()
        for contig_id in new_features.contigs:
            for new in new_features.features(contig_id):
                hits = {
                    old.feature_id for old in old_features.overlapping(contig_id, new.begin, new.end)
                    if old.feature_id != new.feature_id and new.overlap_length(old) > 0
                }
                if hits:
                    overlaps[new.feature_id] = hits
        return overlaps

    def resolve(self, new_features: FeatureIndex,
                overlaps: OverlapRecord) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
        """
        Pick a replacement identifier for each overlapping new feature.

        The first old ID in natural sort order is qualified with the genome of
        the new feature's contig. A replacement is a conflict, and none of its
        claimants adopts it, when more than one new feature claims it or when
        another new feature on the same contig already carries it.

        Returns:
            Tuple of (new ID -> replacement ID for unambiguous cases,
            replacement ID -> new IDs involved, for conflicts)
        """
        candidates: Dict[str, str] = OrderedDict()
        claims: Dict[str, List[str]] = defaultdict(list)
        held: Set[str] = set()
        for contig_id in new_features.contigs:
            genome_id = genome_from_id(contig_id, self.separator)
            contig_features = new_features.features(contig_id)
            own_ids = {f.feature_id for f in contig_features}
            for new in contig_features:
                old_ids = overlaps.get(new.feature_id)
                if not old_ids:
                    continue
                replacement = qualify_id(genome_id, natsorted(old_ids)[0], self.separator)
                candidates[new.feature_id] = replacement
                claims[replacement].append(new.feature_id)
                if replacement != new.feature_id and replacement in own_ids:
                    held.add(replacement)

        conflicts: Dict[str, List[str]] = {}
        for replacement, claimants in claims.items():
            if replacement in held:
                conflicts[replacement] = natsorted(set(claimants) | {replacement})
                logging.warning(f"{replacement} is already a new feature ID; "
                                f"keeping their own IDs: {', '.join(natsorted(claimants))}")
            elif len(claimants) > 1:
                conflicts[replacement] = natsorted(claimants)
                logging.warning(f"{len(claimants)} new features overlap {replacement}; "
                                f"keeping their own IDs: {', '.join(conflicts[replacement])}")
        resolved = {new_id: rep for new_id, rep in candidates.items() if rep not in conflicts}
        return resolved, conflicts

    def reconcile(self, new_features: FeatureIndex, old_features: FeatureIndex) -> ReconcileResult:
        """
        Intersect, resolve identifiers and emit the merged feature set.

        New coordinates always win. Old features that no new feature
        overlaps or supersedes are passed through unchanged.
        """
        overlaps = self.intersect(new_features, old_features)
        resolved, conflicts = self.resolve(new_features, overlaps)

        result = ReconcileResult(overlaps=overlaps, conflicts=conflicts)
        merged: List[Feature] = []
        emitted_by_contig: Dict[str, Set[str]] = defaultdict(set)

        for new in new_features:
            if new.feature_id in resolved:
                emitted = resolved[new.feature_id]
                result.outcomes[new.feature_id] = 'both'
                merged.append(new.with_id(emitted, Alias=[new.feature_id]))
            else:
                emitted = new.feature_id
                result.outcomes[new.feature_id] = 'conflict' if new.feature_id in overlaps else 'new'
                merged.append(new)
                if new.feature_id not in overlaps:
                    logging.debug(f"{new.feature_id} does not overlap any existing feature")
            result.id_map[new.feature_id] = emitted
            emitted_by_contig[new.contig_id].add(emitted)

        overlapped_old = set()
        for old_ids in overlaps.values():
            overlapped_old.update(old_ids)

        for old in old_features:
            if old.feature_id in overlapped_old:
                continue
            if old.feature_id in emitted_by_contig[old.contig_id]:
                # superseded by a new feature carrying the same ID
                continue
            result.passed_through.append(old.feature_id)
            merged.append(old)

        result.merged = FeatureIndex(merged)
        logging.info(f"Reconciled {len(result.outcomes)} new and {len(old_features)} old features: "
                     f"{result.new_overlapping_count} new features adopted old IDs, "
                     f"{result.old_overlapping_count} old features overlapped, "
                     f"{result.count_outcome('conflict')} kept new IDs after conflicts, "
                     f"{result.count_outcome('new')} without overlap, "
                     f"{len(result.passed_through)} old features passed through")
        return result

    @staticmethod
    def merge_sequences(result: ReconcileResult, new_sequences: Dict[str, str],
                        old_sequences: Dict[str, str]) -> Dict[str, str]:
        """Sequences keyed by emitted ID; new sequences always win."""
        sequences: Dict[str, str] = OrderedDict()
        for new_id, emitted in result.id_map.items():
            if new_id in new_sequences:
                sequences[emitted] = new_sequences[new_id]
            else:
                logging.warning(f"No sequence found for new feature {new_id}")
        for old_id in result.passed_through:
            if old_id in old_sequences:
                sequences[old_id] = old_sequences[old_id]
        return sequences


class GroupPostProcessor:
    """Threshold similarities, average duplicate edges and name clusters."""

    def __init__(self, idtag: str = "fam", min_similarity: float = 0.0, rescale: bool = False):
        if not 0 <= min_similarity < 1:
            raise ValueError(f"Invalid minimum similarity: {min_similarity}")
        self.idtag = idtag
        self.min_similarity = min_similarity
        self.rescale = rescale

    def filter_similarities(self, pairs: Iterable[Tuple[str, str, float]]) -> List[Tuple[str, str, float]]:
        """Drop self pairs and pairs below the threshold, optionally rescaling."""
        kept = []
        for ref, que, similarity in pairs:
            if ref == que or similarity < self.min_similarity:
                continue
            if self.rescale:
                similarity = (similarity - self.min_similarity) / (1 - self.min_similarity)
            kept.append((ref, que, similarity))
        return kept

    def build_edges(self, pairs: Iterable[Tuple[str, str, float]]) -> List[SimilarityEdge]:
        """Collapse (A, B) and (B, A) observations into one averaged edge."""
        totals: Dict[Tuple[str, str], List[float]] = OrderedDict()
        for ref, que, similarity in pairs:
            key = tuple(sorted((ref, que)))
            totals.setdefault(key, []).append(similarity)

        edges = []
        for (source, target), values in sorted(totals.items()):
            edges.append(SimilarityEdge(
                source=source,
                target=target,
                weight=sum(values) / len(values),
                observations=len(values),
            ))
        return edges

    def assign_groups(self, clusters: Iterable[Iterable[str]], first_counter: int = 1) -> GroupAssignment:
        """
        Name clusters in input order.

        Every cluster consumes a number, but only multi-member clusters are
        kept in the returned mapping.
        """
        assignment = GroupAssignment()
        counter = first_counter
        for cluster in clusters:
            members = natsorted(set(cluster))
            if not members:
                continue
            group_id = format_group_id(self.idtag, counter)
            counter += 1
            assignment.clusters_seen += 1
            if len(members) == 1:
                assignment.singletons += 1
                continue
            for element_id in members:
                if element_id in assignment.element_to_group:
                    raise ValidationError(
                        f"element assigned to both {assignment.element_to_group[element_id]} and {group_id}",
                        feature_id=element_id
                    )
                assignment.element_to_group[element_id] = group_id
            assignment.groups[group_id] = members

        logging.info(f"Assigned {assignment.group_count} groups from {assignment.clusters_seen} clusters "
                     f"({assignment.singletons} singletons)")
        return assignment
