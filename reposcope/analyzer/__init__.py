from reposcope.analyzer.analyze import (
    analyze_repository,
    fallback_analysis,
    generate_full_readme,
    generate_mermaid_diagram,
    generate_readme_architecture,
    normalize_analysis,
)
from reposcope.analyzer.parsing import AnalysisParseError, extract_json, repair_json

__all__ = [
    "AnalysisParseError",
    "analyze_repository",
    "extract_json",
    "fallback_analysis",
    "generate_full_readme",
    "generate_mermaid_diagram",
    "generate_readme_architecture",
    "normalize_analysis",
    "repair_json",
]
