import logging
from typing import Dict, Optional

from depscope.build.base import BuildProject, BuildScope, ResolvedScope
from depscope.core.scopes import SHADOW_SCOPE_NAME
from depscope.core.variants import (
    ARTIFACT_TYPE_ATTRIBUTE,
    JAVA_RUNTIME,
    USAGE_ATTRIBUTE,
    PlatformArtifactTypeRule,
    VariantAttributeRule,
)
from depscope.errors import ResolutionError, ScopeResolutionError

# Module kinds publishing several packagings of the same component
MULTI_VARIANT_KINDS = frozenset({"android"})


class ScopeResolver:
    """Resolves a scope, falling back to shadow copies when the direct attempt fails.

    Attempts run strictly in sequence: each fallback registers a new scope on the
    project and the name must stay unique.
    """

    def resolve(
        self,
        project: BuildProject,
        scope: BuildScope,
        variant_attributes: Optional[Dict[str, str]] = None,
    ) -> ResolvedScope:
        try:
            return scope.resolve()
        except ResolutionError as e:
            logging.info(f"Could not resolve '{scope.name}' of '{project.name}', retrying with a copy: {e}")

        try:
            return self.create_shadow_scope(project, scope, variant_attributes).resolve()
        except ResolutionError as e:
            logging.info(f"Copy of '{scope.name}' of '{project.name}' failed, skipping unresolvable dependencies: {e}")

        shadow = self.create_shadow_scope(project, scope, variant_attributes, skip_unresolvable=True)
        try:
            return shadow.resolve()
        except ResolutionError as e:
            raise ScopeResolutionError(project.name, scope.name, e) from e

    def create_shadow_scope(
        self,
        project: BuildProject,
        original: BuildScope,
        variant_attributes: Optional[Dict[str, str]] = None,
        skip_unresolvable: bool = False,
    ) -> BuildScope:
        name = SHADOW_SCOPE_NAME
        index = 0
        while project.find_scope(name) is not None:
            name = f"{SHADOW_SCOPE_NAME}{index}"
            index += 1

        shadow = project.create_scope(name)
        apply_variant_attributes(project, shadow, variant_attributes)

        for dependency in original.all_dependencies:
            # Module dependencies are never probed, a failing one fails the whole scope
            if skip_unresolvable and not dependency.is_module:
                probe = project.detached_scope([dependency])
                apply_variant_attributes(project, probe, variant_attributes)
                try:
                    probe.resolve()
                except ResolutionError as e:
                    logging.warning(
                        f"Skipping unresolvable dependency {dependency.id} of scope '{original.name}' "
                        f"in '{project.name}': {e}"
                    )
                    continue
            shadow.dependencies.append(dependency)

        logging.debug(f"Created {name} for '{original.name}' with {len(shadow.dependencies)} dependencies.")
        return shadow


def apply_variant_attributes(
    project: BuildProject,
    scope: BuildScope,
    variant_attributes: Optional[Dict[str, str]] = None,
) -> None:
    scope.attributes[USAGE_ATTRIBUTE] = JAVA_RUNTIME

    for key, value in (variant_attributes or {}).items():
        scope.attributes[key] = value
        scope.disambiguation_rules[key] = VariantAttributeRule(value)

    if project.kind in MULTI_VARIANT_KINDS:
        scope.disambiguation_rules.setdefault(ARTIFACT_TYPE_ATTRIBUTE, PlatformArtifactTypeRule())
