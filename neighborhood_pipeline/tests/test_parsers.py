#!/usr/bin/env python3

"""
Tests for input parsers and output writers.
"""

import unittest
import tempfile
import shutil
import sys
import os

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from neighborhood_pipeline.core.data_structures import Feature, GroupAssignment, region_boundary
from neighborhood_pipeline.core.exceptions import ParseError
from neighborhood_pipeline.core.feature_index import FeatureIndex
from neighborhood_pipeline.core.generators import OutputGenerator
from neighborhood_pipeline.core.parsers import FeatureParser, parse_fasta, split_multi
from neighborhood_pipeline.core.processors import (
    GroupPostProcessor, NeighborhoodMerger, NeighborhoodPopulator
)


class ParserTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.parser = FeatureParser()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def write(self, name: str, content: str) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w') as f:
            f.write(content)
        return path


class TestGFF3Parsing(ParserTestCase):

    def test_parse_genes(self):
        path = self.write("genes.gff3", "\n".join([
            "##gff-version 3",
            "g1_ctg1\tmetaeuk\tgene\t100\t400\t.\t+\t.\tID=g1_a;Name=alpha%2Cbeta",
            "g1_ctg1\tmetaeuk\tmRNA\t100\t400\t.\t+\t.\tID=g1_a.t1;Parent=g1_a",
            "g1_ctg1\tmetaeuk\tgene\t900\t500\t.\t-\t.\tID=g1_b",
        ]) + "\n")

        features = self.parser.parse_gff3(path)
        self.assertEqual([f.feature_id for f in features], ["g1_a", "g1_b"])
        self.assertEqual(features[0].get_attribute("Name"), "alpha,beta")
        self.assertEqual(features[0].source, "metaeuk")
        self.assertEqual((features[1].begin, features[1].end), (500, 900))
        self.assertEqual(self.parser.warnings, [])

    def test_malformed_lines_warn(self):
        path = self.write("bad.gff3", "\n".join([
            "g1_ctg1\tsrc\tgene\t100",
            "g1_ctg1\tsrc\tgene\t100\t200\t.\t+\t.\tName=noid",
            "g1_ctg1\tsrc\tgene\tx\t200\t.\t+\t.\tID=g1_c",
            "g1_ctg1\tsrc\tgene\t300\t400\t.\t+\t.\tID=g1_d",
        ]) + "\n")

        with self.assertLogs(level='WARNING'):
            features = self.parser.parse_gff3(path)
        self.assertEqual([f.feature_id for f in features], ["g1_d"])
        self.assertEqual(len(self.parser.warnings), 3)

    def test_alternate_name_field(self):
        path = self.write("names.gff3",
                          "g1_ctg1\tsrc\tgene\t1\t10\t.\t+\t.\tID=x;Name=g1_named\n")
        features = self.parser.parse_gff3(path, name_field="Name")
        self.assertEqual(features[0].feature_id, "g1_named")

    def test_missing_file(self):
        with self.assertRaises(ParseError):
            self.parser.parse_gff3(os.path.join(self.temp_dir, "missing.gff3"))


class TestTableParsing(ParserTestCase):

    def test_parse_bed(self):
        path = self.write("seeds.bed", "\n".join([
            "g1_ctg1\t100\t200\tg1_s1\ttyr,fre\t+\tg1_nbhd00001\tDUF1|PF2",
            "g1_ctg1\t300\t400\tg1_s2",
        ]) + "\n")
        features, tags, groups = self.parser.parse_bed(path)

        self.assertEqual([f.feature_id for f in features], ["g1_s1", "g1_s2"])
        self.assertEqual(tags, {("g1_ctg1", "g1_s1"): {"tyr", "fre"}, ("g1_ctg1", "g1_s2"): set()})
        self.assertEqual(groups, {("g1_ctg1", "g1_s1"): "g1_nbhd00001"})
        self.assertEqual(features[0].attributes["annotation"], ["DUF1", "PF2"])
        self.assertEqual(features[1].strand, ".")

    def test_parse_bed_same_id_on_two_contigs(self):
        path = self.write("seeds.bed", "g1_c1\t100\t200\tcap\ttyr\t+\tg1_nbhd00001\n"
                                       "g1_c2\t500\t600\tcap\tfre\t-\tg1_nbhd00002\n")
        features, tags, groups = self.parser.parse_bed(path)

        self.assertEqual(len(features), 2)
        self.assertEqual(tags, {("g1_c1", "cap"): {"tyr"}, ("g1_c2", "cap"): {"fre"}})
        self.assertEqual(groups, {("g1_c1", "cap"): "g1_nbhd00001", ("g1_c2", "cap"): "g1_nbhd00002"})

    def test_similarities_out_of_range_skipped(self):
        path = self.write("pairs.sim", "A\tB\t0.5\nA\tC\t1.0\nA\tD\tx\nB\tC\t0\n")
        with self.assertLogs(level='WARNING'):
            pairs = self.parser.parse_similarities(path)
        self.assertEqual(pairs, [("A", "B", 0.5), ("B", "C", 0.0)])

    def test_parse_clusters(self):
        path = self.write("clusters.mcl", "a\tb\tc\n\nd\n")
        self.assertEqual(self.parser.parse_clusters(path), [["a", "b", "c"], ["d"]])

    def test_parse_rules(self):
        path = self.write("rules.txt", "# name\trequired\tforbidden\ncargo\ttyr,fre\tnlr\nany\t.\n")
        rules = self.parser.parse_rules(path)
        self.assertEqual(rules[0].required, frozenset({"tyr", "fre"}))
        self.assertEqual(rules[0].forbidden, frozenset({"nlr"}))
        self.assertEqual(rules[1].required, frozenset())
        self.assertTrue(rules[1].accepts(set()))

    def test_parse_annotations_deduplicates(self):
        path = self.write("ann.txt", "g1_a\tpfam\tPF1\ng1_a\tcdd\tPF1\ng1_a\tcdd\tcd2\n")
        self.assertEqual(self.parser.parse_annotations(path), {"g1_a": ["PF1", "cd2"]})

    def test_parse_path_list(self):
        path = self.write("gffs.txt", "g1\t/data/g1.gff3\nbroken\n")
        with self.assertLogs(level='WARNING'):
            entries = self.parser.parse_path_list(path)
        self.assertEqual(entries, [("g1", "/data/g1.gff3")])

    def test_missing_table(self):
        with self.assertRaises(ParseError):
            self.parser.parse_clusters(os.path.join(self.temp_dir, "missing.mcl"))

    def test_split_multi(self):
        self.assertEqual(split_multi("a,b;c|d"), ["a", "b", "c", "d"])
        self.assertEqual(split_multi(""), [])

    def test_parse_fasta(self):
        path = self.write("seqs.faa", ">g1_a desc\nMKV\nLLA\n>g1_b\nMAA\n")
        self.assertEqual(parse_fasta(path), {"g1_a": "MKVLLA", "g1_b": "MAA"})


class TestOutputWriters(ParserTestCase):

    def test_neighborhood_table_round_trip(self):
        index = FeatureIndex([
            Feature("g1_ctg1", "g1_s1", 1000, 2000, "+", "gene"),
            Feature("g1_ctg1", "g1_gx", 2300, 2350, "-", "gene"),
            Feature("g1_ctg1", "g1_s2", 2600, 3000, "+", "gene"),
            Feature("g1_ctg2", "g1_s3", 50, 80, "+", "gene"),
        ])
        hoods = NeighborhoodPopulator("_", flank=400).populate(
            NeighborhoodMerger("_").merge({"g1_s1", "g1_s2", "g1_s3"}, index), index)

        path = os.path.join(self.temp_dir, "hoods.bed")
        OutputGenerator().write_neighborhood_bed(hoods, path, tags={("g1_ctg1", "g1_s1"): {"tyr"}},
                                                 annotations={"g1_gx": ["DUF1", "PF2"]})
        members = self.parser.parse_neighborhood_bed(path)

        self.assertEqual(list(members), hoods.ids)
        for hood in hoods:
            self.assertEqual(region_boundary(members[hood.neighborhood_id]), hood.boundary())

        with open(path) as f:
            first = f.readline().rstrip('\n').split('\t')
        self.assertEqual(first, ["g1_ctg1", "1000", "2000", "g1_s1", "tyr", "+", "g1_nbhd00001", "."])

    def test_round_trip_with_id_repeated_across_contigs(self):
        index = FeatureIndex([
            Feature("g1_c1", "cap", 100, 200, "+", "gene"),
            Feature("g1_c2", "cap", 500, 600, "-", "gene"),
        ])
        hoods = NeighborhoodMerger("_").merge({"cap"}, index)
        self.assertEqual(len(hoods), 2)

        path = os.path.join(self.temp_dir, "hoods.bed")
        OutputGenerator().write_neighborhood_bed(
            hoods, path, tags={("g1_c1", "cap"): {"tyr"}, ("g1_c2", "cap"): {"fre"}})
        members = self.parser.parse_neighborhood_bed(path)

        self.assertEqual(list(members), hoods.ids)
        for hood in hoods:
            self.assertEqual(region_boundary(members[hood.neighborhood_id]), hood.boundary())

        _features, tags, _groups = self.parser.parse_bed(path)
        self.assertEqual(tags[("g1_c1", "cap")], {"tyr"})
        self.assertEqual(tags[("g1_c2", "cap")], {"fre"})

    def test_gff3_line_quotes_reserved_characters(self):
        feature = Feature("g1_ctg1", "g1_a", 1, 10, "+", "gene",
                          attributes={"ID": ["old"], "Note": ["a;b=c"], "Alias": ["x", "y"]})
        line = OutputGenerator().format_gff3_line(feature)
        self.assertEqual(line.split('\t')[8], "ID=g1_a;Note=a%3Bb%3Dc;Alias=x,y")
        self.assertEqual(line.split('\t')[1], "neighborhood_pipeline")

    def test_gff3_written_then_parsed(self):
        feature = Feature("g1_ctg1", "g1_a", 1, 10, "-", "gene", attributes={"Note": ["a,b"]})
        path = os.path.join(self.temp_dir, "out.gff3")
        OutputGenerator().write_gff3([feature], path)
        parsed = self.parser.parse_gff3(path)
        self.assertEqual(parsed, [feature])
        self.assertEqual(parsed[0].attributes["Note"], ["a,b"])

    def test_fasta_wrapping(self):
        path = os.path.join(self.temp_dir, "out.faa")
        OutputGenerator(fasta_width=4).write_fasta({"a": "MKVLLA"}, path)
        with open(path) as f:
            self.assertEqual(f.read(), ">a\nMKVL\nLA\n")

    def test_group_tables(self):
        processor = GroupPostProcessor()
        assignment = processor.assign_groups([["e1", "e2"], ["e3"]])
        edges = processor.build_edges([("e1", "e2", 0.5), ("e2", "e1", 0.9)])
        writer = OutputGenerator()

        nodes_path = writer.write_group_nodes(assignment, os.path.join(self.temp_dir, "nodes.txt"),
                                              elements={"e1": (500, "tsd"), "e3": (90, "emp")})
        edges_path = writer.write_group_edges(edges, os.path.join(self.temp_dir, "edges.txt"))

        with open(nodes_path) as f:
            self.assertEqual(f.read().splitlines(), [
                "id\tgroup\tlength\tboundaryType",
                "e1\tfam0001\t500\ttsd",
                "e3\tNA\t90\temp",
                "e2\tfam0001\tNA\tNA",
            ])
        with open(edges_path) as f:
            self.assertEqual(f.read().splitlines(), ["from\tto\tweight", "e1\te2\t0.70"])

    def test_empty_group_assignment(self):
        path = OutputGenerator().write_groups(GroupAssignment(), os.path.join(self.temp_dir, "g.txt"))
        with open(path) as f:
            self.assertEqual(f.read(), "")


if __name__ == '__main__':
    unittest.main()
