"""
Prediction layer.

Issues (current gaps), pre-issues (forecast gaps), ripple, trust risk,
introduction opportunities, and the actions built from all of them.
"""

from .action_candidates import generate_company_action_candidates
from .action_impact import ImpactContext, attach_company_impact_models, build_impact_model
from .action_schema import (
    Action,
    GoalSource,
    ImpactModel,
    ImpactValidationError,
    IntroductionSource,
    IssueSource,
    ManualSource,
    PreIssueSource,
    SourceType,
    validate_action,
    validate_impact_model,
)
from .intro_opportunity import IntroductionOpportunity, IntroOpportunityEngine, Timing
from .issues import Issue, IssueDetector, IssueReport, IssueType, Severity
from .preissues import PreIssue, PreIssueForecaster, PreIssueType
from .ripple import RippleResult, calculate_aggregate_ripple
from .trust_risk import TrustRisk, TrustRiskBand, TrustRiskCalculator

__all__ = [
    "Action",
    "GoalSource",
    "ImpactContext",
    "ImpactModel",
    "ImpactValidationError",
    "IntroOpportunityEngine",
    "IntroductionOpportunity",
    "IntroductionSource",
    "Issue",
    "IssueDetector",
    "IssueReport",
    "IssueSource",
    "IssueType",
    "ManualSource",
    "PreIssue",
    "PreIssueForecaster",
    "PreIssueSource",
    "PreIssueType",
    "RippleResult",
    "Severity",
    "SourceType",
    "Timing",
    "TrustRisk",
    "TrustRiskBand",
    "TrustRiskCalculator",
    "attach_company_impact_models",
    "build_impact_model",
    "calculate_aggregate_ripple",
    "generate_company_action_candidates",
    "validate_action",
    "validate_impact_model",
]
