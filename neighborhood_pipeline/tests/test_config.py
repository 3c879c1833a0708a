#!/usr/bin/env python3

"""
Unit tests for configuration management.

Tests loading from dictionaries, JSON and YAML files and environment
variables, and validation of the identifier grammar.
"""

import unittest
import tempfile
import os
import json
import sys

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from neighborhood_pipeline.core.config import PipelineConfig, load_config
from neighborhood_pipeline.core.exceptions import ConfigurationError


class EnvironmentMixin:
    """Set environment variables for one test and restore them afterwards."""

    def set_env(self, **values):
        for key, value in values.items():
            original = os.environ.get(key)
            self.addCleanup(self._restore_env, key, original)
            os.environ[key] = value

    @staticmethod
    def _restore_env(key, value):
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


class TestPipelineConfig(EnvironmentMixin, unittest.TestCase):
    """Test PipelineConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = PipelineConfig()

        self.assertEqual(config.separator, "_")
        self.assertEqual(config.neighborhood_tag, "nbhd")
        self.assertEqual(config.group_tag, "fam")
        self.assertEqual(config.merge_distance, 0)
        self.assertEqual(config.flank, 0)
        self.assertEqual(config.min_similarity, 0.0)
        self.assertEqual(config.memory_limit_mb, 4096)
        self.assertTrue(config.qualify_ids)
        self.assertFalse(config.rescale_similarity)
        self.assertFalse(config.debug_mode)

    def test_config_validation(self):
        """Test configuration validation."""
        PipelineConfig().validate()

        invalid = [
            dict(separator=":"),
            dict(separator="|"),
            dict(separator="__"),
            dict(separator=" "),
            dict(neighborhood_tag=""),
            dict(neighborhood_tag="my_tag"),
            dict(group_tag="fam_"),
            dict(merge_distance=-1),
            dict(flank=-10),
            dict(min_similarity=1.0),
            dict(min_similarity=-0.1),
            dict(memory_limit_mb=50),
            dict(batch_size=0),
            dict(name_field=""),
        ]
        for kwargs in invalid:
            with self.subTest(**kwargs):
                with self.assertRaises(ConfigurationError):
                    PipelineConfig(**kwargs)

    def test_other_separator_allows_underscored_tags(self):
        config = PipelineConfig(separator="-", neighborhood_tag="my_tag")
        self.assertEqual(config.neighborhood_tag, "my_tag")

    def test_config_from_dict(self):
        """Test creating config from dictionary."""
        config = PipelineConfig.from_dict({
            "merge_distance": 10000,
            "flank": 5000,
            "group_tag": "elem",
            "unknown_key": "ignored",
        })

        self.assertEqual(config.merge_distance, 10000)
        self.assertEqual(config.flank, 5000)
        self.assertEqual(config.group_tag, "elem")
        self.assertEqual(config.batch_size, 1000)

    def test_config_from_dict_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_dict({"merge_distance": -5})

    def test_config_to_dict(self):
        config = PipelineConfig(flank=250, debug_mode=True)
        config_dict = config.to_dict()

        self.assertEqual(config_dict["flank"], 250)
        self.assertTrue(config_dict["debug_mode"])
        self.assertIn("separator", config_dict)

    def test_config_from_json_file(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            json.dump({"merge_distance": 300, "min_similarity": 0.25}, f)
            config_path = f.name
        self.addCleanup(os.unlink, config_path)

        config = PipelineConfig.from_file(config_path)
        self.assertEqual(config.merge_distance, 300)
        self.assertEqual(config.min_similarity, 0.25)

    def test_config_from_yaml_file(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("separator: '-'\nneighborhood_tag: hood\nrescale_similarity: true\n")
            config_path = f.name
        self.addCleanup(os.unlink, config_path)

        config = PipelineConfig.from_file(config_path)
        self.assertEqual(config.separator, "-")
        self.assertEqual(config.neighborhood_tag, "hood")
        self.assertTrue(config.rescale_similarity)

    def test_config_from_nonexistent_file(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_file("/nonexistent/config.json")

    def test_config_from_invalid_files(self):
        for suffix, content in (('.json', "{ invalid json }"), ('.yaml', "a: [1, 2"), ('.yml', "- a\n- b\n")):
            with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as f:
                f.write(content)
                config_path = f.name
            self.addCleanup(os.unlink, config_path)
            with self.subTest(suffix=suffix, content=content):
                with self.assertRaises(ConfigurationError):
                    PipelineConfig.from_file(config_path)

    def test_config_save_to_file(self):
        config = PipelineConfig(flank=1000, separator="-", debug_mode=True)
        for suffix in ('.json', '.yaml'):
            with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as f:
                config_path = f.name
            self.addCleanup(os.unlink, config_path)

            config.save_to_file(config_path)
            loaded = PipelineConfig.from_file(config_path)
            self.assertEqual(loaded, config)

    def test_config_from_env(self):
        self.set_env(NEIGHBORHOOD_MERGE_DISTANCE='2000',
                     NEIGHBORHOOD_FLANK='500',
                     NEIGHBORHOOD_TAG='hood',
                     NEIGHBORHOOD_MIN_SIMILARITY='0.3',
                     NEIGHBORHOOD_DEBUG_MODE='true')

        config = PipelineConfig.from_env()
        self.assertEqual(config.merge_distance, 2000)
        self.assertEqual(config.flank, 500)
        self.assertEqual(config.neighborhood_tag, "hood")
        self.assertEqual(config.min_similarity, 0.3)
        self.assertTrue(config.debug_mode)
        self.assertEqual(config.batch_size, 1000)

    def test_config_from_env_invalid_values(self):
        self.set_env(NEIGHBORHOOD_FLANK='wide')
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_env()

    def test_config_from_env_failing_validation(self):
        self.set_env(NEIGHBORHOOD_SEPARATOR=';')
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_env()


class TestLoadConfig(EnvironmentMixin, unittest.TestCase):
    """Test the load_config function."""

    def test_load_default_config(self):
        config = load_config(use_env=False)
        self.assertEqual(config, PipelineConfig())

    def test_load_config_priority(self):
        """File values override environment values, which override defaults."""
        self.set_env(NEIGHBORHOOD_FLANK='2048', NEIGHBORHOOD_MERGE_DISTANCE='7')

        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            json.dump({"flank": 1024}, f)
            config_path = f.name
        self.addCleanup(os.unlink, config_path)

        config = load_config(config_path=config_path, use_env=True)
        self.assertEqual(config.flank, 1024)

        config = load_config(use_env=True)
        self.assertEqual(config.flank, 2048)
        self.assertEqual(config.merge_distance, 7)

    def test_load_config_no_env(self):
        self.set_env(NEIGHBORHOOD_FLANK='2048')
        config = load_config(use_env=False)
        self.assertEqual(config.flank, 0)


if __name__ == '__main__':
    unittest.main()
