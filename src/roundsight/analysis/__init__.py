"""
Match analysis: round classification, player statistics, heatmaps,
snapshots and the summary, driven by MatchEngine.
"""

from roundsight.analysis.engine import MatchEngine, analyze_match
from roundsight.analysis.models import MatchAnalysis

__all__ = ["MatchEngine", "analyze_match", "MatchAnalysis"]
