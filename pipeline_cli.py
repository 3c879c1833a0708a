#!/usr/bin/env python3

"""
Command-line interface for the neighborhood pipeline.

Subcommands:
  sketch  build neighborhoods around seed features
  merge   merge newly predicted genes into an existing annotation
  group   name element clusters and write graph tables
"""

import argparse
import sys
import os
import logging

from neighborhood_pipeline.core.config import PipelineConfig, load_config
from neighborhood_pipeline.core.exceptions import PipelineError
from neighborhood_pipeline.core.parsers import FeatureParser


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Genomic neighborhood construction and annotation merging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Neighborhoods within 10 kb of each other, populated with 5 kb flanks
  python pipeline_cli.py sketch --gffs gffs.txt --seeds captains.bed --merge-distance 10000 --flank 5000 --output-dir sketch

  # Merge new gene predictions into an existing annotation
  python pipeline_cli.py merge --new metaeuk.gff3 --old genome.gff3 --genome gen1 --output-dir merged

  # Name clusters from an external clustering run
  python pipeline_cli.py group --similarities elements.sim --clusters elements.mcl --output-dir groups
        """
    )

    # Options shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--output-dir',
        required=True,
        help='Output directory for result files'
    )
    common.add_argument(
        '--prefix',
        help='Prefix of output file names (default: subcommand name)'
    )
    common.add_argument(
        '--separator',
        help="Character separating genome and feature IDs (default: '_')"
    )
    common.add_argument(
        '--config',
        help='Configuration file (JSON or YAML)'
    )
    common.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    common.add_argument(
        '--memory-limit',
        type=int,
        help='Memory limit in MB (default: 4096)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    sketch = subparsers.add_parser('sketch', parents=[common],
                                   help='Build neighborhoods around seed features')
    sketch.add_argument('--gffs', required=True,
                        help='Two-column file: genome code and GFF3 path')
    sketch.add_argument('--seeds', required=True,
                        help='BED-like file of seed features and their tags')
    sketch.add_argument('--merge-distance', type=int,
                        help='Seeds closer than this many bp are merged (default: 0)')
    sketch.add_argument('--flank', type=int,
                        help='bp added to each side of a neighborhood before population (default: 0)')
    sketch.add_argument('--tag', help='Tag used in neighborhood IDs (default: nbhd)')
    sketch.add_argument('--annotations', help='featureID, source, value annotation table')
    sketch.add_argument('--rules', help='Tag rule file applied after population')

    merge = subparsers.add_parser('merge', parents=[common],
                                  help='Merge new gene predictions into an existing annotation')
    merge.add_argument('--new', required=True, help='GFF3 of newly predicted genes')
    merge.add_argument('--old', required=True, help='GFF3 of the existing annotation')
    merge.add_argument('--genome', help='Genome code used to qualify unqualified IDs')
    merge.add_argument('--new-fasta', help='Sequences of the new genes')
    merge.add_argument('--old-fasta', help='Sequences of the existing genes')

    group = subparsers.add_parser('group', parents=[common],
                                  help='Name clusters and write node/edge tables')
    group.add_argument('--similarities', required=True, help='refID, queID, similarity table')
    group.add_argument('--clusters', required=True, help='Clusters, one per line, tab-separated')
    group.add_argument('--elements', help='Element BED supplying length and boundary type')
    group.add_argument('--idtag', help='Prefix of group IDs (default: fam)')
    group.add_argument('--min-similarity', type=float, help='Drop pairs below this similarity')
    group.add_argument('--rescale', action='store_true', help='Rescale kept similarities to [0, 1)')

    return parser


def validate_input_files(args) -> None:
    """Validate that input files exist."""
    candidates = ('gffs', 'seeds', 'annotations', 'rules', 'new', 'old', 'new_fasta',
                  'old_fasta', 'similarities', 'clusters', 'elements', 'config')
    for name in candidates:
        file_path = getattr(args, name, None)
        if file_path and not os.path.exists(file_path):
            raise FileNotFoundError(f"{name.replace('_', '-')} file not found: {file_path}")


def apply_overrides(config: PipelineConfig, args) -> PipelineConfig:
    """Override config with command line arguments and re-validate."""
    overrides = {
        'separator': 'separator',
        'memory_limit': 'memory_limit_mb',
        'merge_distance': 'merge_distance',
        'flank': 'flank',
        'tag': 'neighborhood_tag',
        'idtag': 'group_tag',
        'min_similarity': 'min_similarity',
    }
    for arg_name, field_name in overrides.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            setattr(config, field_name, value)
    if getattr(args, 'rescale', False):
        config.rescale_similarity = True
    if args.log_level == 'DEBUG':
        config.debug_mode = True

    config.validate()
    return config


def main(argv=None):
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        validate_input_files(args)

        config = apply_overrides(load_config(config_path=args.config, use_env=True), args)
        prefix = args.prefix or args.command

        # Imported late so argument errors do not pay for the full import
        from neighborhood_pipeline import NeighborhoodPipeline

        pipeline = NeighborhoodPipeline(config)
        if args.command == 'sketch':
            gff_entries = FeatureParser().parse_path_list(args.gffs)
            for genome_id, gff_path in gff_entries:
                if not os.path.exists(gff_path):
                    raise FileNotFoundError(f"GFF3 of {genome_id} not found: {gff_path}")
            success = pipeline.run_sketch(gff_entries, args.seeds, args.output_dir, prefix,
                                          annotation_file=args.annotations, rules_file=args.rules)
        elif args.command == 'merge':
            success = pipeline.run_reconcile(args.new, args.old, args.output_dir, prefix,
                                             genome_id=args.genome, new_fasta=args.new_fasta,
                                             old_fasta=args.old_fasta)
        else:
            success = pipeline.run_groups(args.similarities, args.clusters, args.output_dir, prefix,
                                          elements_bed=args.elements)

        if success:
            logger.info("Pipeline completed successfully!")
            return 0
        else:
            logger.error("Pipeline failed!")
            return 1

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
