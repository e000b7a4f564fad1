"""
Recommendation engine: "what to do with my price".

Stateless rule evaluation over spread analysis output. Each fuel gets at
most one recommendation (first matching rule wins); the combined list is
ordered by priority tier and truncated.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

import structlog

from config import settings
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.recommendation import (
    PRIORITY_ORDER,
    ImpactType,
    PricingRecommendation,
    RecommendationPriority,
    RecommendationRule,
)
from models.spread import Quartile, SpreadResult
from services.translation_service import (
    TranslationService,
    get_translation_service,
    resolve_locale,
)
from utils.statistics import to_money

logger = structlog.get_logger(__name__)

# Percent away from the market average that triggers above/below rules
AVERAGE_THRESHOLD_PERCENT = Decimal("3")

# Percent gap that adds CONFIDENCE_BOOST to the base confidence
STRONG_SIGNAL_PERCENT = Decimal("10")
CONFIDENCE_BOOST = 0.1


@dataclass(frozen=True)
class RuleDefinition:
    priority: RecommendationPriority
    impact: ImpactType
    base_confidence: float


RULES: Dict[RecommendationRule, RuleDefinition] = {
    RecommendationRule.OUTLIER_HIGH: RuleDefinition(
        RecommendationPriority.CRITICAL, ImpactType.CUSTOMER_LOSS, 0.95
    ),
    RecommendationRule.OUTLIER_LOW: RuleDefinition(
        RecommendationPriority.HIGH, ImpactType.MARGIN_LOSS, 0.90
    ),
    RecommendationRule.ABOVE_AVERAGE: RuleDefinition(
        RecommendationPriority.HIGH, ImpactType.REVENUE, 0.85
    ),
    RecommendationRule.BELOW_AVERAGE: RuleDefinition(
        RecommendationPriority.MEDIUM, ImpactType.MARGIN, 0.80
    ),
    RecommendationRule.COMPETITIVE_ADVANTAGE: RuleDefinition(
        RecommendationPriority.LOW, ImpactType.POSITIVE, 0.70
    ),
}

ADVANTAGE_QUARTILES = (Quartile.Q1, Quartile.Q2)


def calculate_confidence(rule: RecommendationRule, percent: Optional[Decimal] = None) -> float:
    """Base confidence of the rule, boosted when the price gap exceeds 10%."""
    confidence = RULES[rule].base_confidence
    if percent is not None and abs(percent) > STRONG_SIGNAL_PERCENT:
        confidence = min(1.0, confidence + CONFIDENCE_BOOST)
    return round(confidence, 2)


def match_rule(analysis: SpreadResult) -> Optional[RecommendationRule]:
    """
    First matching rule for one fuel's spread analysis.

    Order: outlier high, outlier low, >3% above average, >3% below
    average, Q1/Q2 competitive advantage. None when nothing applies.
    """
    position = analysis.position
    if position.user_price is None or position.from_avg_percent is None:
        return None

    percent = position.from_avg_percent
    if position.is_outlier:
        return RecommendationRule.OUTLIER_HIGH if percent > 0 else RecommendationRule.OUTLIER_LOW
    if percent > AVERAGE_THRESHOLD_PERCENT:
        return RecommendationRule.ABOVE_AVERAGE
    if percent < -AVERAGE_THRESHOLD_PERCENT:
        return RecommendationRule.BELOW_AVERAGE
    if position.quartile in ADVANTAGE_QUARTILES:
        return RecommendationRule.COMPETITIVE_ADVANTAGE
    return None


def suggest_price(rule: RecommendationRule, user_price: Decimal, from_avg: Decimal) -> Decimal:
    """Move toward the average: fully when above it, halfway when below."""
    gap = abs(from_avg)
    if rule in (RecommendationRule.OUTLIER_HIGH, RecommendationRule.ABOVE_AVERAGE):
        return to_money(user_price - gap)
    if rule in (RecommendationRule.OUTLIER_LOW, RecommendationRule.BELOW_AVERAGE):
        return to_money(user_price + gap * Decimal("0.5"))
    return to_money(user_price)


class RecommendationEngine:
    """Turns spread analysis into localized pricing recommendations."""

    def __init__(
        self,
        translator: Optional[TranslationService] = None,
        max_count: Optional[int] = None,
    ):
        self.translator = translator or get_translation_service()
        self.max_count = max_count or settings.recommendation_max_count

    def _impact_text(self, impact: ImpactType, amount: Optional[Decimal], lang: str) -> str:
        if impact == ImpactType.MARGIN:
            daily = (amount or Decimal("0")) * 100
            return self.translator.translate("impact.margin", lang, amount=f"{daily:,.0f}")
        return self.translator.translate(f"impact.{impact.value}", lang)

    def recommend_fuel(
        self,
        fuel_type: FuelType,
        analysis: SpreadResult,
        lang: Optional[str] = None,
    ) -> Optional[PricingRecommendation]:
        """Recommendation for one fuel, or None when no rule matches."""
        rule = match_rule(analysis)
        if rule is None:
            return None

        lang = resolve_locale(lang or self.translator.default_locale)
        definition = RULES[rule]
        position = analysis.position
        label = self.translator.fuel_label(fuel_type, lang)
        from_avg = position.from_avg or Decimal("0")

        values = {"fuel_type": label}
        amount = None
        percent = None
        if rule == RecommendationRule.ABOVE_AVERAGE:
            amount = to_money(abs(from_avg))
            percent = abs(position.from_avg_percent)
        elif rule == RecommendationRule.BELOW_AVERAGE:
            amount = to_money(abs(from_avg) * Decimal("0.5"))
            percent = abs(position.from_avg_percent)
        elif rule == RecommendationRule.COMPETITIVE_ADVANTAGE:
            values["quartile"] = position.quartile.value

        if percent is not None:
            values["percent"] = percent
            values["amount"] = amount

        return PricingRecommendation(
            rule=rule,
            fuel_type=fuel_type,
            fuel_label=label,
            message=self.translator.translate(rule.value, lang, **values),
            priority=definition.priority,
            suggested_price=suggest_price(rule, position.user_price, from_avg),
            potential_impact=self._impact_text(definition.impact, amount, lang),
            confidence=calculate_confidence(rule, percent),
            locale=lang,
        )

    def generate_recommendations(
        self,
        analysis: Mapping[FuelType, SpreadResult],
        lang: Optional[str] = None,
    ) -> List[PricingRecommendation]:
        """
        Recommendations across fuels, most urgent first.

        Args:
            analysis: Spread result per fuel type
            lang: Locale for messages ("es" default, "en")

        Returns:
            At most max_count recommendations, stable-sorted by priority
        """
        recommendations = []
        for fuel_type in ALL_FUEL_TYPES:
            result = analysis.get(fuel_type)
            if result is None:
                continue
            recommendation = self.recommend_fuel(fuel_type, result, lang)
            if recommendation is not None:
                recommendations.append(recommendation)

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        selected = recommendations[:self.max_count]

        logger.info(
            "recommendations_generated",
            candidates=len(recommendations),
            returned=len(selected),
            priorities=[r.priority.value for r in selected]
        )
        return selected


# Singleton instance
_recommendation_engine: Optional[RecommendationEngine] = None


def get_recommendation_engine() -> RecommendationEngine:
    """Get singleton instance of RecommendationEngine."""
    global _recommendation_engine
    if _recommendation_engine is None:
        _recommendation_engine = RecommendationEngine()
    return _recommendation_engine
