import unittest
from pathlib import Path

from depscope.config import OutputFormat, load_settings
from depscope.core.model import PackageCoordinate
from depscope.errors import ConfigurationError


class TestLoadSettings(unittest.TestCase):

    def test_defaults(self):
        settings = load_settings({}, environ={})

        self.assertFalse(settings.all_scopes)
        self.assertFalse(settings.show_all)
        self.assertTrue(settings.color_enabled)
        self.assertEqual(settings.output_format, OutputFormat.DEFAULT)
        self.assertEqual(settings.cyclonedx_component_type, "library")
        self.assertEqual(settings.output_dir, Path("."))

    def test_full_table(self):
        settings = load_settings({
            "all_scopes": True,
            "modules_excluded": ["docs"],
            "variant_attributes": {"artifactType": "jar"},
            "output_format": "json-cyclonedx-1-4",
            "exclude_vulnerability_ids": ["CVE-1"],
            "exclude_coordinates": ["g:a:1", "pkg:maven/g/b@2"],
            "output_dir": "build/reports",
        }, environ={})

        self.assertTrue(settings.all_scopes)
        self.assertEqual(settings.modules_excluded, frozenset({"docs"}))
        self.assertEqual(settings.variant_attributes, {"artifactType": "jar"})
        self.assertEqual(settings.output_format, OutputFormat.JSON_CYCLONE_DX_14)
        self.assertEqual(settings.exclusions.vulnerability_ids, frozenset({"CVE-1"}))
        self.assertEqual(
            settings.exclusions.coordinates,
            frozenset({PackageCoordinate("g", "a", "1"), PackageCoordinate("g", "b", "2")}),
        )
        self.assertEqual(settings.output_dir, Path("build/reports"))

    def test_environment_overrides_credentials(self):
        settings = load_settings(
            {"username": "file-user", "token": "file-token"},
            environ={"DEPSCOPE_OSSINDEX_TOKEN": "env-token"},
        )

        self.assertEqual(settings.username, "file-user")
        self.assertEqual(settings.token, "env-token")

    def test_invalid_values(self):
        for table in (
            {"output_format": "xml"},
            {"show_all": "yes"},
            {"modules_excluded": "docs"},
            {"exclude_coordinates": ["not-a-coordinate"]},
            {"variant_attributes": ["jar"]},
        ):
            with self.subTest(table=table):
                with self.assertRaises(ConfigurationError):
                    load_settings(table, environ={})


if __name__ == "__main__":
    unittest.main()
