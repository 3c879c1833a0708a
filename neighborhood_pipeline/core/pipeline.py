#!/usr/bin/env python3

"""
Main pipeline class for neighborhood construction, annotation merging and
group post-processing.

Integrates parsing, processing and output generation with per-phase
performance monitoring.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .config import PipelineConfig
from .data_structures import Feature, Neighborhoods, ReconcileResult
from .exceptions import ValidationError
from .feature_index import FeatureIndex
from .generators import OutputGenerator, merged_features, output_path
from .identifiers import format_features, qualify_id
from .parsers import FeatureParser, parse_fasta
from .processors import (
    GroupPostProcessor, NeighborhoodMerger, NeighborhoodPopulator, OverlapReconciler,
    RuleFilter, summarize_occupancy
)
from ..utils.performance_monitor import PerformanceMonitor


class NeighborhoodPipeline:
    """Main pipeline class that coordinates all processing phases."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.monitor = PerformanceMonitor(memory_limit_mb=config.memory_limit_mb,
                                          enabled=config.enable_memory_monitoring)
        self.parser = FeatureParser()
        self.generator = OutputGenerator()
        self.index: Optional[FeatureIndex] = None
        self.neighborhoods: Optional[Neighborhoods] = None
        self.reconcile_result: Optional[ReconcileResult] = None
        self._log_handler: Optional[logging.Handler] = None

    def run_sketch(self, gff_entries: Sequence[Tuple[str, str]], seeds_bed: str, output_dir: str,
                   prefix: str = "sketch", annotation_file: Optional[str] = None,
                   rules_file: Optional[str] = None) -> bool:
        """
        Build neighborhoods around seed features.

        Args:
            gff_entries: (genome ID, GFF3 path) pairs
            seeds_bed: BED-like file of seed features with their tags
            output_dir: Output directory path
            prefix: Prefix of output file names
            annotation_file: Optional ``featureID\\tsource\\tvalue`` annotations
            rules_file: Optional tag rules applied after population

        Returns:
            True if the run completed successfully
        """
        try:
            self._start(output_dir, "neighborhood construction")

            with self.monitor.phase_context("input_parsing") as metrics:
                self.index = self._load_index(gff_entries)
                seed_features, tags, _groups = self.parser.parse_bed(seeds_bed)
                annotations = self.parser.parse_annotations(annotation_file) if annotation_file else {}
                rules = self.parser.parse_rules(rules_file) if rules_file else []
                metrics.records_processed = len(self.index) + len(seed_features)

            with self.monitor.phase_context("neighborhood_merging") as metrics:
                merger = NeighborhoodMerger(self.config.separator, self.config.merge_distance,
                                            self.config.neighborhood_tag)
                merged = merger.merge({f.feature_id for f in seed_features}, self.index)
                metrics.records_processed = len(seed_features)

            with self.monitor.phase_context("neighborhood_population") as metrics:
                populator = NeighborhoodPopulator(self.config.separator, self.config.flank)
                populated = populator.populate(merged, self.index)
                metrics.records_processed = len(populated.member_ids())
                self.monitor.check_memory_limit()

            if rules:
                with self.monitor.phase_context("rule_filtering") as metrics:
                    populated = RuleFilter(rules).filter(populated, tags)
                    metrics.records_processed = len(populated)
            self.neighborhoods = populated

            with self.monitor.phase_context("output_generation") as metrics:
                columns, rows = summarize_occupancy(populated, tags, annotations)
                self.generator.write_neighborhood_bed(
                    populated, output_path(output_dir, prefix, "bed"), tags, annotations)
                self.generator.write_occupancy(columns, rows, output_path(output_dir, prefix, "mat"))
                metrics.records_processed = len(rows)

            self.generator.write_report(output_path(output_dir, prefix, "report.txt"),
                                        "Neighborhood Pipeline - Sketch Report", {
                "input statistics": {
                    "Genomes": len(gff_entries),
                    "Indexed features": len(self.index),
                    "Seed features": len(seed_features),
                    "Data-quality warnings": len(self.parser.warnings),
                },
                "neighborhoods": {
                    "Merged neighborhoods": len(merged),
                    "Reported neighborhoods": len(populated),
                    "Features in neighborhoods": len(populated.member_ids()),
                    "Merge distance (bp)": self.config.merge_distance,
                    "Flank (bp)": self.config.flank,
                },
                "performance": self._performance_section(),
            })
            return self._finish()

        except Exception as e:
            return self._fail(e)

    def run_reconcile(self, new_gff: str, old_gff: str, output_dir: str, prefix: str = "merged",
                      genome_id: Optional[str] = None, new_fasta: Optional[str] = None,
                      old_fasta: Optional[str] = None) -> bool:
        """
        Merge newly predicted features into an existing annotation.

        Args:
            new_gff: GFF3 of newly predicted features
            old_gff: GFF3 of the existing annotation
            output_dir: Output directory path
            prefix: Prefix of output file names
            genome_id: Genome code; when set, IDs are qualified first
            new_fasta: Optional sequences of the new features
            old_fasta: Optional sequences of the existing features

        Returns:
            True if the run completed successfully
        """
        try:
            self._start(output_dir, "annotation merging")

            with self.monitor.phase_context("input_parsing") as metrics:
                new_index = self._load_index([(genome_id, new_gff)])
                old_index = self._load_index([(genome_id, old_gff)])
                metrics.records_processed = len(new_index) + len(old_index)

            with self.monitor.phase_context("overlap_reconciliation") as metrics:
                reconciler = OverlapReconciler(self.config.separator)
                result = reconciler.reconcile(new_index, old_index)
                self.reconcile_result = result
                metrics.records_processed = len(new_index)

            with self.monitor.phase_context("output_generation") as metrics:
                merged = merged_features(result)
                self.generator.write_gff3(merged, output_path(output_dir, prefix, "gff3"),
                                          self.config.name_field)
                self.generator.write_id_map(result, output_path(output_dir, prefix, "ids.txt"))
                if new_fasta:
                    old_sequences = self._load_sequences(old_fasta, genome_id) if old_fasta else {}
                    sequences = reconciler.merge_sequences(
                        result, self._load_sequences(new_fasta, genome_id), old_sequences)
                    self.generator.write_fasta(sequences, output_path(output_dir, prefix, "faa"))
                metrics.records_processed = len(merged)

            self.generator.write_report(output_path(output_dir, prefix, "report.txt"),
                                        "Neighborhood Pipeline - Annotation Merge Report", {
                "input statistics": {
                    "New features": len(new_index),
                    "Existing features": len(old_index),
                    "Data-quality warnings": len(self.parser.warnings),
                },
                "reconciliation": {
                    "New features adopting existing IDs": result.new_overlapping_count,
                    "Existing features overlapped": result.old_overlapping_count,
                    "New features kept after ID conflicts": result.count_outcome('conflict'),
                    "New features without overlap": result.count_outcome('new'),
                    "Existing features passed through": result.count_outcome('old'),
                    "Merged features": len(merged),
                },
                "performance": self._performance_section(),
            })
            return self._finish()

        except Exception as e:
            return self._fail(e)

    def run_groups(self, similarity_file: str, clusters_file: str, output_dir: str,
                   prefix: str = "groups", elements_bed: Optional[str] = None) -> bool:
        """
        Name clusters and build graph tables from a similarity list.

        Args:
            similarity_file: ``refID\\tqueID\\tsimilarity`` lines
            clusters_file: Clusters from the external clustering step
            output_dir: Output directory path
            prefix: Prefix of output file names
            elements_bed: Optional element table supplying length and
                boundary type (tag column) of each node

        Returns:
            True if the run completed successfully
        """
        try:
            self._start(output_dir, "group post-processing")

            with self.monitor.phase_context("input_parsing") as metrics:
                pairs = self.parser.parse_similarities(similarity_file)
                clusters = self.parser.parse_clusters(clusters_file)
                elements = self._load_elements(elements_bed) if elements_bed else {}
                metrics.records_processed = len(pairs) + len(clusters)

            with self.monitor.phase_context("group_assignment") as metrics:
                processor = GroupPostProcessor(self.config.group_tag, self.config.min_similarity,
                                               self.config.rescale_similarity)
                edges = processor.build_edges(processor.filter_similarities(pairs))
                assignment = processor.assign_groups(clusters)
                metrics.records_processed = len(edges) + assignment.clusters_seen

            with self.monitor.phase_context("output_generation"):
                self.generator.write_groups(assignment, output_path(output_dir, prefix, "txt"))
                self.generator.write_group_nodes(assignment, output_path(output_dir, prefix, "nodes.txt"),
                                                 elements)
                self.generator.write_group_edges(edges, output_path(output_dir, prefix, "edges.txt"))

            self.generator.write_report(output_path(output_dir, prefix, "report.txt"),
                                        "Neighborhood Pipeline - Group Report", {
                "input statistics": {
                    "Similarity pairs": len(pairs),
                    "Clusters": len(clusters),
                    "Data-quality warnings": len(self.parser.warnings),
                },
                "groups": {
                    "Edges": len(edges),
                    "Clusters counted": assignment.clusters_seen,
                    "Multi-member groups": assignment.group_count,
                    "Singletons": assignment.singletons,
                },
                "performance": self._performance_section(),
            })
            return self._finish()

        except Exception as e:
            return self._fail(e)

    def _load_index(self, gff_entries: Sequence[Tuple[Optional[str], str]]) -> FeatureIndex:
        """Parse every GFF3, qualify IDs per genome when configured, and index."""
        sources: List[List[Feature]] = []
        for genome_id, gff_path in gff_entries:
            features = self.parser.parse_gff3(gff_path, self.config.target_feature_type,
                                              self.config.name_field)
            if genome_id and self.config.qualify_ids:
                features = format_features(features, genome_id, self.config.separator)
            sources.append(features)

        index = FeatureIndex.build(*sources)
        if not len(index):
            raise ValidationError(
                f"no {self.config.target_feature_type} features found in "
                f"{', '.join(path for _genome, path in gff_entries)}"
            )
        logging.info(f"Indexed {len(index)} features on {len(index.contigs)} contigs")
        return index

    def _load_sequences(self, fasta_path: str, genome_id: Optional[str]) -> Dict[str, str]:
        """Parse a FASTA, qualifying its IDs the same way as the annotation."""
        sequences = parse_fasta(fasta_path)
        if not (genome_id and self.config.qualify_ids):
            return sequences
        return {qualify_id(genome_id, seq_id, self.config.separator): sequence
                for seq_id, sequence in sequences.items()}

    def _load_elements(self, elements_bed: str) -> Dict[str, Tuple[int, str]]:
        features, tags, _groups = self.parser.parse_bed(elements_bed)
        elements: Dict[str, Tuple[int, str]] = {}
        for feature in features:
            boundary_type: Set[str] = tags.get(feature.key, set())
            elements[feature.feature_id] = (feature.length, ','.join(sorted(boundary_type)) or 'NA')
        return elements

    def _start(self, output_dir: str, description: str) -> None:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        self._setup_pipeline_logging(output_dir)
        logging.info(f"Starting {description}")
        logging.info(f"Configuration: {self.config}")
        logging.info(f"Output directory: {output_dir}")

    def _finish(self) -> bool:
        logging.info("Pipeline completed successfully")
        self.monitor.log_performance_report()
        self._teardown_pipeline_logging()
        return True

    def _fail(self, error: Exception) -> bool:
        logging.error(f"Pipeline failed: {error}")
        logging.debug("Full traceback:", exc_info=True)
        self._teardown_pipeline_logging()
        return False

    def _performance_section(self) -> Dict[str, object]:
        performance = self.monitor.get_performance_summary()
        section: Dict[str, object] = {
            "Total processing time (s)": performance['total_elapsed_time'],
            "Peak memory usage (MB)": performance['peak_memory_mb'],
        }
        for phase_name, phase_data in performance['phases'].items():
            section[f"{phase_name} (s)"] = phase_data['elapsed_time']
        return section

    def _setup_pipeline_logging(self, output_dir: str) -> None:
        """Set up pipeline-specific logging."""
        log_file = Path(output_dir) / 'neighborhood_pipeline.log'

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        self._log_handler = file_handler

        if self.config.debug_mode:
            root_logger.setLevel(logging.DEBUG)

    def _teardown_pipeline_logging(self) -> None:
        if self._log_handler is not None:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler.close()
            self._log_handler = None
