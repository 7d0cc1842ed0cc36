"""
DAG-driven computation engine.

compute(raw_data, now) turns a raw fact payload into ranked actions:

    raw facts → validated Dataset → per-company DAG (graph.GRAPH) →
    portfolio pre-issues → one portfolio-wide ranking

Each node is handed a read-only view holding only the outputs of its
declared dependencies, so reading an undeclared node fails immediately.
Validation problems are collected into meta.errors and the computation
continues; structural graph errors raise.
"""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from backbone.config import EngineConfig, load_config
from backbone.contracts.facts import Company
from backbone.contracts.forbidden import forbidden_field_errors
from backbone.contracts.loader import assemble_companies, load_dataset
from backbone.dates import ensure_utc, isoformat
from backbone.decide.ranking import ActionRanker, RankedAction
from backbone.derive.goal_trajectory import derive_company_goal_trajectories
from backbone.derive.health import HealthBand, derive_health
from backbone.derive.runway import derive_company_runway
from backbone.derive.trajectory import derive_company_trajectories
from backbone.observability.context import CompanyScope, RunContext
from backbone.observability.metrics import (
    actions_ranked,
    companies_computed,
    compute_duration,
    compute_errors,
    compute_runs,
    node_duration,
    timed,
)
from backbone.predict.action_candidates import actions_from_preissue, generate_company_action_candidates
from backbone.predict.action_impact import ImpactContext, attach_company_impact_models
from backbone.predict.action_schema import Action, SourceType
from backbone.predict.intro_opportunity import IntroOpportunityEngine
from backbone.predict.issues import IssueDetector
from backbone.predict.preissues import PreIssueForecaster, validate_pre_issue
from backbone.predict.ripple import calculate_aggregate_ripple
from backbone.runtime.graph import GRAPH, MissingNodeError, topo_sort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Globals:
    """Cross-company collections shared read-only by every company DAG."""

    people: tuple = ()
    relationships: tuple = ()
    investors: tuple = ()
    team: tuple = ()


NodeFn = Callable[[Mapping[str, Any], Company, datetime, Globals, EngineConfig], Any]


# =============================================================================
# NODE COMPUTE FUNCTIONS
# =============================================================================


def _runway(ctx, company, now, env, config):
    return derive_company_runway(company, now)


def _trajectory(ctx, company, now, env, config):
    return derive_company_trajectories(company, now)


def _goal_trajectory(ctx, company, now, env, config):
    return derive_company_goal_trajectories(company, now, ctx["trajectory"])


def _health(ctx, company, now, env, config):
    return derive_health(ctx["runway"], config.issues)


def _issues(ctx, company, now, env, config):
    return IssueDetector(config.issues).detect(company, ctx["runway"], ctx["trajectory"], now)


def _preissues(ctx, company, now, env, config):
    return PreIssueForecaster(config.preissues).forecast(
        company, ctx["runway"], ctx["goal_trajectory"], now
    )


def _ripple(ctx, company, now, env, config):
    return calculate_aggregate_ripple(ctx["issues"].issues)


def _intro_opportunity(ctx, company, now, env, config):
    engine = IntroOpportunityEngine(config.intro, config.trust_risk)
    return engine.generate(
        company,
        env.people,
        env.relationships,
        env.investors,
        env.team,
        ctx["goal_trajectory"],
        now,
    )


def _action_candidates(ctx, company, now, env, config):
    return generate_company_action_candidates(
        company,
        ctx["issues"].issues,
        ctx["preissues"],
        ctx["goal_trajectory"],
        ctx["intro_opportunity"],
        now,
    )


def _action_impact(ctx, company, now, env, config):
    context = ImpactContext(
        company=company,
        goal_trajectories=ctx["goal_trajectory"],
        ripple=ctx["ripple"],
    )
    return attach_company_impact_models(ctx["action_candidates"], context)


def _action_ranker(ctx, company, now, env, config):
    actions, _ = ctx["action_impact"]
    return ActionRanker(config.ranking).rank(actions)


def _priority(ctx, company, now, env, config):
    return [priority_record(ranked) for ranked in ctx["action_ranker"]]


NODE_COMPUTE: dict[str, NodeFn] = {
    "runway": _runway,
    "trajectory": _trajectory,
    "goal_trajectory": _goal_trajectory,
    "health": _health,
    "issues": _issues,
    "preissues": _preissues,
    "ripple": _ripple,
    "intro_opportunity": _intro_opportunity,
    "action_candidates": _action_candidates,
    "action_impact": _action_impact,
    "action_ranker": _action_ranker,
    "priority": _priority,
}


def priority_record(ranked: RankedAction) -> dict:
    """Flattened compatibility view of one ranked action."""
    action = ranked.action
    return {
        "company_id": action.company_id,
        "company_name": action.entity_ref.get("name") or action.title.split(":")[0],
        "resolution_id": action.resolution_id,
        "title": action.title,
        "priority": round(ranked.rank_score, 4),
        "rank": ranked.rank,
        "action_id": action.action_id,
        "source_type": str(action.source_type),
    }


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class CompanyResult:
    id: str
    name: str
    derived: dict[str, Any]

    @property
    def impact_errors(self) -> list[str]:
        _, errors = self.derived.get("action_impact", ([], []))
        return errors

    @property
    def preissue_errors(self) -> list[str]:
        return pre_issue_errors(self.derived.get("preissues", []))

    @property
    def actions(self) -> list[RankedAction]:
        return self.derived.get("action_ranker", [])

    def to_dict(self) -> dict:
        d = self.derived
        return {
            "id": self.id,
            "name": self.name,
            "derived": {
                "runway": d["runway"].to_dict(),
                "health": d["health"].to_dict(),
                "trajectories": {k: t.to_dict() for k, t in d["trajectory"].items()},
                "goal_trajectories": [t.to_dict() for t in d["goal_trajectory"]],
                "issues": d["issues"].to_dict(),
                "preissues": [p.to_dict() for p in d["preissues"]],
                "ripple": d["ripple"].to_dict(),
                "intro_opportunities": [o.to_dict() for o in d["intro_opportunity"]],
                "actions": [r.to_dict() for r in d["action_ranker"]],
                "priorities": list(d["priority"]),
            },
        }


@dataclass
class ComputeResult:
    companies: list[CompanyResult]
    actions: list[RankedAction]
    today_actions: list[RankedAction]
    priorities: list[dict]
    meta: dict = field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        return self.meta.get("errors", [])

    @property
    def warnings(self) -> list[str]:
        return self.meta.get("warnings", [])

    def to_dict(self) -> dict:
        return {
            "companies": [c.to_dict() for c in self.companies],
            "actions": [a.to_dict() for a in self.actions],
            "today_actions": [a.to_dict() for a in self.today_actions],
            "priorities": list(self.priorities),
            "meta": dict(self.meta),
        }


# =============================================================================
# ENGINE
# =============================================================================


class Engine:
    """
    Executes the computation graph for each company.

    The graph and node table are injectable so alternative or broken graphs
    can be exercised; the defaults are graph.GRAPH and NODE_COMPUTE.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        graph: Mapping[str, tuple[str, ...]] | None = None,
        nodes: Mapping[str, NodeFn] | None = None,
    ):
        self.config = config or load_config()
        self.graph = GRAPH if graph is None else graph
        self.nodes = NODE_COMPUTE if nodes is None else nodes
        self.order = topo_sort(self.graph)
        for node in self.order:
            if node not in self.nodes:
                raise MissingNodeError(node)

    def run_company(self, company: Company, now: datetime, env: Globals | None = None) -> dict[str, Any]:
        """Run every node once, in topological order, for one company."""
        env = env or Globals()
        outputs: dict[str, Any] = {}
        with CompanyScope(company.id):
            for node in self.order:
                view = MappingProxyType({dep: outputs[dep] for dep in self.graph[node]})
                start = time.perf_counter()
                outputs[node] = self.nodes[node](view, company, now, env, self.config)
                elapsed = time.perf_counter() - start
                node_duration.observe(elapsed)
                logger.debug(f"Node {node} for {company.id} in {elapsed * 1000:.1f}ms")
        companies_computed.inc()
        return outputs

    def compute_company(self, company: Company, now: datetime, env: Globals | None = None) -> CompanyResult:
        now = ensure_utc(now)
        return CompanyResult(company.id, company.display_name, self.run_company(company, now, env))

    def portfolio_actions(
        self, dataset_env: Globals, companies: list[Company], now: datetime
    ) -> tuple[list[Action], list[str]]:
        """Actions for pre-issues that belong to the portfolio rather than one company."""
        forecaster = PreIssueForecaster(self.config.preissues)
        preissues = forecaster.forecast_dormant_connections(
            dataset_env.relationships, dataset_env.people, companies, now
        )
        candidates = []
        for preissue in preissues:
            candidates.extend(actions_from_preissue(preissue, now))
        actions, errors = attach_company_impact_models(candidates, ImpactContext())
        return actions, pre_issue_errors(preissues) + errors

    @timed(compute_duration)
    def compute(self, raw_data: dict | None, now: datetime) -> ComputeResult:
        now = ensure_utc(now)
        errors: list[str] = []
        warnings: list[str] = []

        with RunContext():
            compute_runs.inc()
            errors.extend(forbidden_field_errors(raw_data))

            dataset, load_errors = load_dataset(raw_data)
            errors.extend(load_errors)

            env = Globals(
                people=tuple(dataset.people),
                relationships=tuple(dataset.relationships),
                investors=tuple(dataset.investors),
                team=tuple(dataset.team),
            )
            portfolio = [c for c in assemble_companies(dataset) if c.is_portfolio]

            companies = []
            for company in portfolio:
                result = self.compute_company(company, now, env)
                if result.derived["runway"].confidence < self.config.low_confidence_runway:
                    warnings.append(f"[{company.id}] Low confidence runway")
                errors.extend(result.preissue_errors)
                errors.extend(result.impact_errors)
                companies.append(result)

            portfolio_candidates, portfolio_errors = self.portfolio_actions(env, portfolio, now)
            errors.extend(portfolio_errors)

            seen: set[str] = set()
            all_actions: list[Action] = []
            for action in [
                *(r.action for c in companies for r in c.actions),
                *portfolio_candidates,
            ]:
                if action.action_id in seen:
                    continue
                seen.add(action.action_id)
                all_actions.append(action)

            ranked = ActionRanker(self.config.ranking).rank(all_actions)
            actions_ranked.set(len(ranked))

            for error in errors:
                logger.warning(f"Validation error: {error}")
            compute_errors.inc(len(errors))

            meta = {
                "computed_at": isoformat(now),
                "version": self.config.version,
                "errors": errors,
                "warnings": warnings,
                "health_counts": health_counts(companies),
                "action_source_counts": action_source_counts(ranked),
                "execution_order": list(self.order),
            }
            logger.info(
                f"Computed {len(companies)} companies, {len(ranked)} actions, "
                f"{len(errors)} errors, {len(warnings)} warnings"
            )

        return ComputeResult(
            companies=companies,
            actions=ranked,
            today_actions=ranked[: self.config.today_actions],
            priorities=[priority_record(r) for r in ranked],
            meta=meta,
        )


def pre_issue_errors(preissues) -> list[str]:
    return [f"{p.pre_issue_id}: {problem}" for p in preissues for problem in validate_pre_issue(p)]


def health_counts(companies: list[CompanyResult]) -> dict:
    counts = {str(band): 0 for band in (HealthBand.GREEN, HealthBand.YELLOW, HealthBand.RED)}
    severity = {"critical": 0, "high": 0, "medium": 0, "low": 0}
    for company in companies:
        counts[str(company.derived["health"].band)] += 1
        summary = company.derived["issues"].summary
        for key in severity:
            severity[key] += summary[key]
    return {**counts, **severity}


def action_source_counts(ranked: list[RankedAction]) -> dict:
    counts = {str(s): 0 for s in SourceType}
    for r in ranked:
        counts[str(r.action.source_type)] += 1
    return counts


# =============================================================================
# MODULE-LEVEL API
# =============================================================================


def compute(raw_data: dict | None, now: datetime, config: EngineConfig | None = None) -> ComputeResult:
    """Compute the full portfolio. Graph errors raise; everything else lands in meta.errors."""
    return Engine(config).compute(raw_data, now)


def compute_company(
    company: Company,
    now: datetime,
    config: EngineConfig | None = None,
    env: Globals | None = None,
) -> CompanyResult:
    return Engine(config).compute_company(company, now, env)
