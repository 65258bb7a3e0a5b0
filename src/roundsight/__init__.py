"""
RoundSight - CS2 Match Telemetry Analyzer

Folds the event stream of a CS2 match into round classifications (warmup,
knife, official), per-player statistics, spatial heatmaps, radar snapshots
and a coaching summary.

Usage:
    from roundsight import DemoTelemetrySource, analyze_match

    analysis = analyze_match(DemoTelemetrySource("match.dem"))
    print(analysis.metadata.rounds, analysis.summary.mvp)
"""

__version__ = "0.1.0"
__author__ = "RoundSight Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "analyze_match":
        from roundsight.analysis.engine import analyze_match
        return analyze_match
    elif name == "MatchEngine":
        from roundsight.analysis.engine import MatchEngine
        return MatchEngine
    elif name == "MatchAnalysis":
        from roundsight.analysis.models import MatchAnalysis
        return MatchAnalysis
    elif name == "DemoTelemetrySource":
        from roundsight.telemetry.demo_source import DemoTelemetrySource
        return DemoTelemetrySource
    elif name == "ReplayTelemetrySource":
        from roundsight.telemetry.replay_source import ReplayTelemetrySource
        return ReplayTelemetrySource
    elif name == "RoundSightConfig":
        from roundsight.core.config import RoundSightConfig
        return RoundSightConfig
    elif name == "load_config":
        from roundsight.core.config import load_config
        return load_config
    raise AttributeError(f"module 'roundsight' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Analysis
    "analyze_match",
    "MatchEngine",
    "MatchAnalysis",
    # Sources
    "DemoTelemetrySource",
    "ReplayTelemetrySource",
    # Config
    "RoundSightConfig",
    "load_config",
]
