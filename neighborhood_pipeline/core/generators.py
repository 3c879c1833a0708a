#!/usr/bin/env python3

"""
Output generation for neighborhood tables, merged annotations and groups.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import quote

from .data_structures import (
    Feature, FeatureKey, GroupAssignment, Neighborhoods, ReconcileResult, SimilarityEdge
)
from .feature_index import FeatureIndex

GFF_ATTRIBUTE_SAFE = " :/|.-_()[]{}<>+*'\"@!?#$^~"


class OutputGenerator:
    """Serialize pipeline results to tab-separated, GFF3 and FASTA files."""

    def __init__(self, source: str = "neighborhood_pipeline", fasta_width: int = 60):
        self.source = source
        self.fasta_width = fasta_width

    def write_neighborhood_bed(self, neighborhoods: Neighborhoods, path: str,
                               tags: Optional[Dict[FeatureKey, Set[str]]] = None,
                               annotations: Optional[Dict[str, List[str]]] = None) -> str:
        """Write the membership table, one line per member."""
        tags = tags or {}
        annotations = annotations or {}
        with open(path, 'w') as f:
            for hood in neighborhoods:
                for feature in hood.features:
                    feature_tags = ','.join(sorted(tags.get(feature.key, ()))) or '.'
                    values = annotations.get(feature.feature_id) or feature.attributes.get('annotation') or []
                    f.write('\t'.join([
                        feature.contig_id,
                        str(feature.begin),
                        str(feature.end),
                        feature.feature_id,
                        feature_tags,
                        feature.strand,
                        hood.neighborhood_id,
                        '|'.join(values) or '.',
                    ]) + '\n')
        logging.info(f"Wrote {len(neighborhoods)} neighborhoods to {path}")
        return path

    def write_occupancy(self, columns: List[str], rows: List[Dict], path: str) -> str:
        """Write the neighborhood x tag occupancy matrix."""
        header = ['neighborhoodID'] + columns + ['size.bp', 'size.genes', 'distinctAnnotations',
                                                 'annotationCoverage']
        with open(path, 'w') as f:
            f.write('\t'.join(header) + '\n')
            for row in rows:
                values = [row['neighborhoodID']]
                values += [str(row['tags'][tag]) for tag in columns]
                values += [str(row['size.bp']), str(row['size.genes']),
                           str(row['distinctAnnotations']), f"{row['annotationCoverage']:.3f}"]
                f.write('\t'.join(values) + '\n')
        return path

    def write_gff3(self, features: Iterable[Feature], path: str, name_field: str = "ID") -> str:
        """Write features as GFF3, replacing the name attribute with the current ID."""
        count = 0
        with open(path, 'w') as f:
            f.write('##gff-version 3\n')
            for feature in features:
                f.write(self.format_gff3_line(feature, name_field) + '\n')
                count += 1
        logging.info(f"Wrote {count} features to {path}")
        return path

    def format_gff3_line(self, feature: Feature, name_field: str = "ID") -> str:
        attributes = [(name_field, [feature.feature_id])]
        attributes += [(k, v) for k, v in feature.attributes.items() if k != name_field]
        attr_string = ';'.join(
            f"{key}={','.join(quote(v, safe=GFF_ATTRIBUTE_SAFE) for v in values)}"
            for key, values in attributes if values
        )
        source = feature.source if feature.source not in ('', '.') else self.source
        return '\t'.join([
            feature.contig_id, source, feature.feature_type or 'gene',
            str(feature.begin), str(feature.end), '.', feature.strand, '.', attr_string
        ])

    def write_fasta(self, sequences: Dict[str, str], path: str) -> str:
        with open(path, 'w') as f:
            for seq_id, sequence in sequences.items():
                f.write(f">{seq_id}\n")
                for i in range(0, len(sequence), self.fasta_width):
                    f.write(sequence[i:i + self.fasta_width] + '\n')
        return path

    def write_id_map(self, result: ReconcileResult, path: str) -> str:
        """Write new ID, emitted ID, outcome and overlapping old IDs per new feature."""
        with open(path, 'w') as f:
            f.write('newID\temittedID\toutcome\toverlappingOldIDs\n')
            for new_id, emitted in result.id_map.items():
                old_ids = ','.join(sorted(result.overlaps.get(new_id, ()))) or '.'
                f.write(f"{new_id}\t{emitted}\t{result.outcomes[new_id]}\t{old_ids}\n")
        return path

    def write_group_nodes(self, assignment: GroupAssignment, path: str,
                          elements: Optional[Dict[str, Tuple[int, str]]] = None) -> str:
        """
        Write the node table (``id, group, length, boundaryType``).

        Every known element is written; those outside multi-member groups get
        group ``NA``.
        """
        elements = elements or {}
        node_ids = list(elements)
        node_ids += [e for e in assignment.element_to_group if e not in elements]
        with open(path, 'w') as f:
            f.write('id\tgroup\tlength\tboundaryType\n')
            for element_id in node_ids:
                length, boundary_type = elements.get(element_id, ('NA', 'NA'))
                group_id = assignment.element_to_group.get(element_id, 'NA')
                f.write(f"{element_id}\t{group_id}\t{length}\t{boundary_type}\n")
        return path

    def write_group_edges(self, edges: List[SimilarityEdge], path: str) -> str:
        with open(path, 'w') as f:
            f.write('from\tto\tweight\n')
            for edge in edges:
                f.write(f"{edge.source}\t{edge.target}\t{edge.weight:.2f}\n")
        return path

    def write_groups(self, assignment: GroupAssignment, path: str) -> str:
        """Write one line per group: group ID followed by its members."""
        with open(path, 'w') as f:
            for group_id, members in assignment.groups.items():
                f.write(f"{group_id}\t{','.join(members)}\n")
        return path

    def write_report(self, path: str, title: str, sections: Dict[str, Dict[str, object]]) -> str:
        """Write a plain-text processing report."""
        with open(path, 'w') as f:
            f.write(f"{title}\n")
            f.write("=" * 50 + "\n\n")
            for section, values in sections.items():
                f.write(f"{section.upper()}\n")
                f.write("-" * 20 + "\n")
                for key, value in values.items():
                    if isinstance(value, float):
                        f.write(f"{key}: {value:.2f}\n")
                    elif isinstance(value, int):
                        f.write(f"{key}: {value:,}\n")
                    else:
                        f.write(f"{key}: {value}\n")
                f.write("\n")
        logging.info(f"Generated processing report: {path}")
        return path


def output_path(output_dir: str, prefix: str, suffix: str) -> str:
    return str(Path(output_dir) / f"{prefix}.{suffix}")


def merged_features(result: ReconcileResult) -> FeatureIndex:
    """The merged feature set of a reconciliation, which must have been emitted."""
    if result.merged is None:
        raise ValueError("reconciliation result has no merged feature set")
    return result.merged
