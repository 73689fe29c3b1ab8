from typing import Callable, Iterable, Optional

ARTIFACT_TYPE_ATTRIBUTE = "artifactType"
USAGE_ATTRIBUTE = "usage"

JAVA_API = "java-api"
JAVA_RUNTIME = "java-runtime"

JAR_TYPE = "jar"
AAR_TYPE = "aar"

# A rule receives the candidate values and answers the closest match, or None to leave it ambiguous
DisambiguationRule = Callable[[Iterable[str]], Optional[str]]


class VariantAttributeRule:
    """Picks the configured value when it is one of the candidates."""

    def __init__(self, value: str) -> None:
        self.value = value

    def __call__(self, candidates: Iterable[str]) -> Optional[str]:
        return self.value if self.value in set(candidates) else None

    def __repr__(self) -> str:
        return f"VariantAttributeRule({self.value!r})"


class PlatformArtifactTypeRule:
    """Prefers a plain jar over platform packaging such as aar."""

    def __call__(self, candidates: Iterable[str]) -> Optional[str]:
        candidates = set(candidates)
        for preferred in (JAR_TYPE, AAR_TYPE):
            if preferred in candidates:
                return preferred
        return None

    def __repr__(self) -> str:
        return "PlatformArtifactTypeRule()"


def disambiguate(requested: Optional[str], candidates: Iterable[str], rule: Optional[DisambiguationRule] = None) -> Optional[str]:
    candidates = list(dict.fromkeys(candidates))
    if len(candidates) == 1:
        return candidates[0]
    if requested is not None and requested in candidates:
        return requested
    if rule is not None:
        return rule(candidates)
    return None
