from typing import List

from depscope.build.base import BuildProject, BuildScope
from depscope.core.variants import JAVA_API, JAVA_RUNTIME, USAGE_ATTRIBUTE

SHADOW_SCOPE_NAME = "depscopeShadowScope"

COMPILE_ONLY_SCOPE_NAME = "compileOnly"

RELEASE_COMPILE_LEGACY_SCOPE_NAME = "_releaseCompile"
RELEASE_APK_LEGACY_SCOPE_NAME = "_releaseApk"
RELEASE_PUBLISH_LEGACY_SCOPE_NAME = "_releasePublish"
RELEASE_COMPILE_SCOPE_NAME = "releaseCompileClasspath"
RELEASE_RUNTIME_SCOPE_NAME = "releaseRuntimeClasspath"

PRODUCTION_SCOPE_NAMES = frozenset({
    "compileClasspath",
    "runtimeClasspath",
    RELEASE_COMPILE_LEGACY_SCOPE_NAME,
    RELEASE_APK_LEGACY_SCOPE_NAME,
    RELEASE_PUBLISH_LEGACY_SCOPE_NAME,
    RELEASE_COMPILE_SCOPE_NAME,
    RELEASE_RUNTIME_SCOPE_NAME,
})

# Platform variants such as "variantProdReleaseRuntimeClasspath", compared lower-cased
RELEASE_SUFFIXES = tuple(
    name.lower() for name in (
        RELEASE_COMPILE_LEGACY_SCOPE_NAME,
        RELEASE_APK_LEGACY_SCOPE_NAME,
        RELEASE_PUBLISH_LEGACY_SCOPE_NAME,
        RELEASE_COMPILE_SCOPE_NAME,
        RELEASE_RUNTIME_SCOPE_NAME,
    )
)

JVM_USAGES = frozenset({JAVA_API, JAVA_RUNTIME, "java-api-jars", "java-runtime-jars"})


def is_shadow_scope(scope: BuildScope) -> bool:
    return scope.name.startswith(SHADOW_SCOPE_NAME)


def is_acceptable_scope(scope: BuildScope, include_all: bool) -> bool:
    if is_shadow_scope(scope) or not scope.can_be_resolved:
        return False

    if include_all:
        usage = scope.attributes.get(USAGE_ATTRIBUTE)
        return usage is None or usage in JVM_USAGES

    return scope.name in PRODUCTION_SCOPE_NAMES or scope.name.lower().endswith(RELEASE_SUFFIXES)


def select_scopes(project: BuildProject, include_all: bool = False) -> List[BuildScope]:
    """Scopes of a module worth resolving, in declaration order."""
    return [scope for scope in list(project.scopes.values()) if is_acceptable_scope(scope, include_all)]
