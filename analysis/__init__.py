"""
Analysis module for the Bet Tracker Confidence Engine.

This module contains analytical tools for:
- Statistical confidence signals and dynamic weighting
- Recommendation classification and triple-market ranking
- Odds conversion and scoreline modelling
- Scoring patterns, risk assessment and outcome reconciliation
"""

from .matchup import (
    normalize_name,
    game_key,
    game_id,
    matchup_key,
    dedupe_games,
    dedupe_tickets,
    dedupe_candidates,
    find_previous_matchups,
)

from .odds_analyzer import (
    OddsAnalyzer,
    OddsProbabilityModel,
    OddsBandStats,
    ScorelineProbability,
    decimal_to_probability,
    remove_overround,
    calculate_probabilities,
)

from .confidence_estimator import (
    SIGNALS,
    SignalEstimator,
    SignalEstimate,
    ConfidenceBreakdown,
    wilson_confidence,
)

from .weighting import (
    BASE_WEIGHTS,
    DynamicWeightAllocator,
    WeightVector,
    composite_score,
)

from .recommendation import (
    Classification,
    ConfidenceLevel,
    RecommendationCall,
    classify,
)

from .risk_assessment import (
    RiskAssessor,
    RiskAssessment,
    RiskLevel,
    wilson_interval,
    statistical_significance,
    run_monte_carlo,
)

from .scoring_patterns import (
    ScoringPatternAnalyzer,
    ScoringProfile,
    ScoringRecommendation,
    ProfileSource,
)

from .market_ranker import (
    MarketRanker,
    MarketAnalysis,
    RecommendationTriplet,
    rank_markets,
)

from .reconciliation import (
    Reconciler,
    ReconciliationReport,
    ReconciliationState,
    OutcomeReconciliation,
    StoredRecommendation,
    AnalysisType,
)

from .engine import (
    AnalysisPipeline,
    Recommendation,
    RecommendationEngine,
)

__all__ = [
    # Matchup
    'normalize_name',
    'game_key',
    'game_id',
    'matchup_key',
    'dedupe_games',
    'dedupe_tickets',
    'dedupe_candidates',
    'find_previous_matchups',
    # Odds Analyzer
    'OddsAnalyzer',
    'OddsProbabilityModel',
    'OddsBandStats',
    'ScorelineProbability',
    'decimal_to_probability',
    'remove_overround',
    'calculate_probabilities',
    # Confidence Estimator
    'SIGNALS',
    'SignalEstimator',
    'SignalEstimate',
    'ConfidenceBreakdown',
    'wilson_confidence',
    # Weighting
    'BASE_WEIGHTS',
    'DynamicWeightAllocator',
    'WeightVector',
    'composite_score',
    # Recommendation
    'Classification',
    'ConfidenceLevel',
    'RecommendationCall',
    'classify',
    # Risk Assessment
    'RiskAssessor',
    'RiskAssessment',
    'RiskLevel',
    'wilson_interval',
    'statistical_significance',
    'run_monte_carlo',
    # Scoring Patterns
    'ScoringPatternAnalyzer',
    'ScoringProfile',
    'ScoringRecommendation',
    'ProfileSource',
    # Market Ranker
    'MarketRanker',
    'MarketAnalysis',
    'RecommendationTriplet',
    'rank_markets',
    # Reconciliation
    'Reconciler',
    'ReconciliationReport',
    'ReconciliationState',
    'OutcomeReconciliation',
    'StoredRecommendation',
    'AnalysisType',
    # Engine
    'AnalysisPipeline',
    'Recommendation',
    'RecommendationEngine',
]
