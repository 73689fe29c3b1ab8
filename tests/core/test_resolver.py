import unittest
from pathlib import Path

from depscope.build.manifest import parse_manifest
from depscope.core.model import ResolvedArtifact
from depscope.core.resolver import ScopeResolver
from depscope.core.scopes import SHADOW_SCOPE_NAME
from depscope.errors import ResolutionError, ScopeResolutionError

MULTI_VARIANT = """
[[modules]]
name = "app"
group = "com.example"
version = "1.0"
kind = "{kind}"

[modules.dependencies]
implementation = ["com.lib:multi:1.0"]

[repository."com.lib:multi:1.0"]
variants = {{ artifactType = ["aar", "jar"] }}
"""

PARTIALLY_MISSING = """
[[modules]]
name = "app"
group = "com.example"
version = "1.0"

[modules.dependencies]
implementation = ["com.lib:present:1.0", "com.lib:missing:1.0"]

[repository."com.lib:present:1.0"]
"""

MISSING_MODULE = """
[[modules]]
name = "app"
group = "com.example"
version = "1.0"

[modules.dependencies]
implementation = ["com.lib:present:1.0", "project:ghost"]

[repository."com.lib:present:1.0"]
"""


def shadow_scopes(project):
    return [name for name in project.scopes if name.startswith(SHADOW_SCOPE_NAME)]


class TestScopeResolver(unittest.TestCase):

    def setUp(self):
        self.resolver = ScopeResolver()

    def test_direct_success_creates_no_shadow_scope(self):
        project = parse_manifest(PARTIALLY_MISSING.replace(', "com.lib:missing:1.0"', ""))
        scope = project.find_scope("compileClasspath")

        result = self.resolver.resolve(project, scope)

        self.assertEqual([d.id for d in result.first_level], ["com.lib:present:1.0"])
        self.assertEqual(shadow_scopes(project), [])

    def test_platform_rule_settles_ambiguous_variant(self):
        project = parse_manifest(MULTI_VARIANT.format(kind="android"))
        scope = project.find_scope("compileClasspath")

        with self.assertRaises(ResolutionError):
            scope.resolve()

        result = self.resolver.resolve(project, scope)

        self.assertEqual(result.artifacts, [ResolvedArtifact("com.lib:multi:1.0", Path("multi-1.0.jar"), "jar")])
        self.assertEqual(shadow_scopes(project), [SHADOW_SCOPE_NAME])

    def test_caller_variant_attribute_wins(self):
        project = parse_manifest(MULTI_VARIANT.format(kind="android"))
        scope = project.find_scope("runtimeClasspath")

        result = self.resolver.resolve(project, scope, {"artifactType": "aar"})

        self.assertEqual(result.artifacts[0].type, "aar")
        shadow = project.find_scope(SHADOW_SCOPE_NAME)
        self.assertEqual(shadow.attributes["usage"], "java-runtime")
        self.assertEqual(shadow.attributes["artifactType"], "aar")

    def test_unresolvable_dependency_is_dropped_with_warning(self):
        project = parse_manifest(PARTIALLY_MISSING)
        scope = project.find_scope("compileClasspath")

        with self.assertLogs(level="WARNING") as logs:
            result = self.resolver.resolve(project, scope)

        self.assertEqual([d.id for d in result.first_level], ["com.lib:present:1.0"])
        self.assertEqual(len(logs.records), 1)
        self.assertIn("com.lib:missing:1.0", logs.output[0])
        self.assertIn("compileClasspath", logs.output[0])
        self.assertEqual(shadow_scopes(project), [SHADOW_SCOPE_NAME, SHADOW_SCOPE_NAME + "0"])

    def test_ambiguous_variant_without_rule_is_dropped(self):
        project = parse_manifest(MULTI_VARIANT.format(kind="java"))
        scope = project.find_scope("compileClasspath")

        with self.assertLogs(level="WARNING"):
            result = self.resolver.resolve(project, scope)

        self.assertEqual(result.first_level, [])

    def test_missing_module_fails_the_scope(self):
        project = parse_manifest(MISSING_MODULE)
        scope = project.find_scope("compileClasspath")

        with self.assertRaises(ScopeResolutionError) as ctx:
            self.resolver.resolve(project, scope)

        self.assertIsInstance(ctx.exception, ResolutionError)
        self.assertIn("compileClasspath", str(ctx.exception))
        self.assertIn("app", str(ctx.exception))
        self.assertEqual(ctx.exception.scope, "compileClasspath")

    def test_shadow_names_are_unique(self):
        project = parse_manifest(MULTI_VARIANT.format(kind="android"))
        scope = project.find_scope("compileClasspath")

        for _ in range(3):
            self.resolver.create_shadow_scope(project, scope)

        self.assertEqual(
            shadow_scopes(project),
            [SHADOW_SCOPE_NAME, SHADOW_SCOPE_NAME + "0", SHADOW_SCOPE_NAME + "1"],
        )



class TestScopeResolutionError(unittest.TestCase):

    def test_message_with_and_without_cause(self):
        bare = ScopeResolutionError("app", "compileClasspath")
        caused = ScopeResolutionError("app", "compileClasspath", ResolutionError("Could not find g:a:1"))

        self.assertEqual(str(bare), "Could not resolve scope 'compileClasspath' of module 'app'")
        self.assertEqual(str(caused), f"{bare}: Could not find g:a:1")
        self.assertEqual((caused.module, caused.scope), ("app", "compileClasspath"))


if __name__ == "__main__":
    unittest.main()
