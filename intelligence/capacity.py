"""Capacity forecasting and cost planning per service."""
import logging
import numbers
import uuid
from datetime import datetime, timedelta, timezone

from intelligence.stats import finite_series, linear_fit, mean
from models.enums import ResourceType, Severity, Trend
from models.intelligence import (
    CapacityPlan, CapacityRecommendation, CostAnalysis, DataPoint, ResourceProjection,
)
from monitor.sources import SimulatedMetricSource
from utils.errors import InvalidInputError

logger = logging.getLogger("alertengine.intelligence.capacity")

DEFAULT_LIMITS = {"cpu": 80.0, "memory": 85.0, "storage": 90.0, "network": 80.0}
DEFAULT_UNIT_COSTS = {"cpu": 60.0, "memory": 40.0, "storage": 30.0, "network": 20.0}
MAX_HORIZON_DAYS = 365
SAMPLE_INTERVAL_HOURS = 6
TARGET_UTILISATION = 0.9
STABLE_BAND = 1.0  # percentage points over the horizon


def _urgency(margin, already_breached):
    if margin > 0.5:
        return Severity.CRITICAL
    if margin > 0.2 or already_breached:
        return Severity.HIGH
    if margin > 0.05:
        return Severity.MEDIUM
    return Severity.LOW


class CapacityPlanner:
    def __init__(self, limits=None, unit_costs=None, scale_down_below=30.0, planned_discount=0.15,
                 source_factory=None):
        self.limits = {**DEFAULT_LIMITS, **(limits or {})}
        self.unit_costs = {**DEFAULT_UNIT_COSTS, **(unit_costs or {})}
        self.scale_down_below = scale_down_below
        self.planned_discount = planned_discount
        # Builds a per-service source for history the caller did not supply.
        self.source_factory = source_factory or (lambda service: SimulatedMetricSource(seed=service))

    @staticmethod
    def validate_horizon(horizon_days):
        if isinstance(horizon_days, bool) or not isinstance(horizon_days, numbers.Real):
            raise InvalidInputError("Planning horizon must be a number of days", horizon=horizon_days)
        if not 0 < horizon_days <= MAX_HORIZON_DAYS:
            raise InvalidInputError(
                f"Planning horizon must be within (0, {MAX_HORIZON_DAYS}] days", horizon=horizon_days,
            )
        return float(horizon_days)

    def create_plan(self, service, horizon_days=30, history=None, cancel=None):
        """Forecast every resource type and price the current vs optimized trajectory.

        ``history`` maps resource name to utilisation percentages sampled every
        6 hours. Missing resources are filled from the simulated source.
        """
        if not service:
            raise InvalidInputError("Service name is required")
        horizon = self.validate_horizon(horizon_days)
        history = history or {}
        if not isinstance(history, dict):
            raise InvalidInputError("History must map resource names to sample lists")
        source = None

        forecasts = []
        for resource in ResourceType:
            if cancel is not None and cancel.is_set():
                logger.info(f"Capacity planning for {service} cancelled after {len(forecasts)} resource(s)")
                break
            series = history.get(resource.value)
            if series is None:
                source = source or self.source_factory(service)
                series = source.resource_history(resource.value)
            series = finite_series(series, f"History for {resource.value}")
            forecasts.append(self.project(resource.value, series, horizon))

        recommendations = self.recommend(forecasts)
        plan = CapacityPlan(
            id=str(uuid.uuid4()),
            service=service,
            horizon_days=horizon,
            forecasts=forecasts,
            recommendations=recommendations,
            cost_analysis=self.cost_analysis(forecasts, recommendations),
        )
        logger.info(
            f"Capacity plan for {service} ({horizon:g}d): {len(recommendations)} recommendation(s), "
            f"savings ${plan.cost_analysis.savings:,.2f}"
        )
        return plan

    def project(self, resource, series, horizon_days):
        limit = float(self.limits.get(resource, 80.0))
        if not series:
            return ResourceProjection(resource=resource, limit=limit)

        current = series[-1]
        slope, _, r2 = linear_fit(series)
        steps = horizon_days * 24 / SAMPLE_INTERVAL_HOURS
        projected = max(0.0, current + slope * steps)

        now = datetime.now(timezone.utc)
        timeline = [
            DataPoint(
                timestamp=now + timedelta(hours=SAMPLE_INTERVAL_HOURS * k),
                value=round(max(0.0, current + slope * k), 3),
            )
            for k in range(int(steps) + 1)
        ]

        change = projected - current
        if change > STABLE_BAND:
            trend = Trend.INCREASING
        elif change < -STABLE_BAND:
            trend = Trend.DECREASING
        else:
            trend = Trend.STABLE

        confidence = r2 * min(1.0, len(series) / 10) if len(series) >= 2 else 0.0
        return ResourceProjection(
            resource=resource,
            current=round(current, 3),
            projected=round(projected, 3),
            peak=round(max(series + [projected]), 3),
            average=round(mean(series), 3),
            limit=limit,
            trend=trend,
            confidence=round(confidence, 4),
            samples=len(series),
            timeline=timeline,
        )

    def recommend(self, forecasts):
        """Scale up past the limit, scale down below the rightsizing floor. Most urgent first."""
        recommendations = []
        for f in forecasts:
            if f.samples == 0:
                continue
            unit_cost = self.unit_costs.get(f.resource, 0.0)
            if f.projected > f.limit:
                margin = (f.projected - f.limit) / f.limit
                change_pct = round((f.projected / (TARGET_UTILISATION * f.limit) - 1) * 100, 1)
                recommendations.append(CapacityRecommendation(
                    type="scale_up",
                    component=f.resource,
                    action=f"Increase {f.resource} allocation by {change_pct:g}%",
                    change_pct=change_pct,
                    urgency=_urgency(margin, f.current > f.limit),
                    cost_impact=round(unit_cost * change_pct / 100, 2),
                    rationale=f"Projected {f.projected:g}% exceeds the {f.limit:g}% limit",
                ))
            elif f.projected < self.scale_down_below:
                change_pct = round(min(50.0, (1 - f.projected / self.scale_down_below) * 100), 1)
                if change_pct <= 0:
                    continue
                recommendations.append(CapacityRecommendation(
                    type="scale_down",
                    component=f.resource,
                    action=f"Reduce {f.resource} allocation by {change_pct:g}%",
                    change_pct=change_pct,
                    urgency=Severity.LOW,
                    cost_impact=round(-unit_cost * change_pct / 100, 2),
                    rationale=f"Projected {f.projected:g}% is below the {self.scale_down_below:g}% rightsizing floor",
                ))
        recommendations.sort(key=lambda r: (r.urgency.rank, abs(r.cost_impact)), reverse=True)
        return recommendations

    def cost_analysis(self, forecasts, recommendations):
        """Compare the unmanaged trajectory with the plan. Savings never go negative."""
        by_resource = {r.component: r for r in recommendations}
        current_cost = projected_cost = optimized_cost = 0.0
        breakdown = {}

        for f in forecasts:
            unit_cost = self.unit_costs.get(f.resource, 0.0)
            growth = f.projected / f.current if f.current > 0 else 1.0
            trajectory = unit_cost * max(1.0, growth)

            rec = by_resource.get(f.resource)
            if rec is None:
                optimized = trajectory
            elif rec.type == "scale_down":
                optimized = unit_cost * (1 - rec.change_pct / 100)
            else:
                optimized = unit_cost * (1 + rec.change_pct / 100) * (1 - self.planned_discount)

            current_cost += unit_cost
            projected_cost += trajectory
            optimized_cost += optimized
            breakdown[f.resource] = {
                "current": round(unit_cost, 2),
                "projected": round(trajectory, 2),
                "optimized": round(optimized, 2),
            }

        return CostAnalysis(
            current_cost=round(current_cost, 2),
            projected_cost=round(projected_cost, 2),
            optimized_cost=round(optimized_cost, 2),
            savings=round(max(0.0, projected_cost - optimized_cost), 2),
            breakdown=breakdown,
        )
