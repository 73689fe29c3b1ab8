from typing import Optional

NONE = "None"
LOW = "Low"
MEDIUM = "Medium"
HIGH = "High"
CRITICAL = "Critical"
UNKNOWN = "Unknown"

STYLES = {
    NONE: "green",
    LOW: "cyan",
    MEDIUM: "yellow",
    HIGH: "red",
    CRITICAL: "bold red",
    UNKNOWN: "magenta",
}


def get_assessment(cvss_score: Optional[float]) -> str:
    """CVSS v3 qualitative rating."""
    if cvss_score is None:
        return UNKNOWN
    if cvss_score >= 9.0:
        return CRITICAL
    if cvss_score >= 7.0:
        return HIGH
    if cvss_score >= 4.0:
        return MEDIUM
    if cvss_score > 0.0:
        return LOW
    return NONE


def style_for(cvss_score: Optional[float]) -> str:
    return STYLES[get_assessment(cvss_score)]


def format_score(cvss_score: Optional[float]) -> str:
    if cvss_score is None:
        return "(unscored)"
    return f"({cvss_score}/10, {get_assessment(cvss_score)})"
