"""
Localized strings for pricing recommendations.

Spanish is the default locale; unknown locales fall back to it.
"""

from typing import Dict, Optional

from config import settings
from models.fuel import FuelType

DEFAULT_LOCALE = "es"

MESSAGES: Dict[str, Dict[str, str]] = {
    "es": {
        "outlier_high": "⚠️ Tu {fuel_type} es significativamente más caro que la competencia. Revisa urgentemente.",
        "outlier_low": "⚠️ Tu {fuel_type} está muy por debajo del mercado. Podrías estar perdiendo margen.",
        "above_average": (
            "Tu {fuel_type} está {percent}% arriba del promedio del mercado. "
            "Considera reducir ${amount} para mejorar competitividad."
        ),
        "below_average": (
            "Tu {fuel_type} está {percent}% debajo del promedio. "
            "Tienes margen para incrementar ${amount} sin perder competitividad."
        ),
        "competitive_advantage": (
            "Tu {fuel_type} tiene ventaja competitiva en el cuartil {quartile}. "
            "Mantén esta posición estratégica."
        ),
        # Impact texts
        "impact.revenue": "Aumento estimado de 10-15% en tráfico de clientes",
        "impact.margin": "Mejora de margen de aproximadamente ${amount} por día",
        "impact.customer_loss": "Riesgo de perder 20-30% de clientes sensibles al precio",
        "impact.margin_loss": "Mejora potencial de margen de 5-10%",
        "impact.positive": "Mantén una posición de mercado sólida",
    },
    "en": {
        "outlier_high": "⚠️ Your {fuel_type} is significantly more expensive than competitors. Urgent review needed.",
        "outlier_low": "⚠️ Your {fuel_type} is significantly below market. You might be losing margin.",
        "above_average": (
            "Your {fuel_type} is {percent}% above market average. "
            "Consider reducing by ${amount} to improve competitiveness."
        ),
        "below_average": (
            "Your {fuel_type} is {percent}% below average. "
            "You have room to increase by ${amount} without losing competitiveness."
        ),
        "competitive_advantage": (
            "Your {fuel_type} has competitive advantage in quartile {quartile}. "
            "Maintain this strategic position."
        ),
        "impact.revenue": "Increase customer traffic by estimated 10-15%",
        "impact.margin": "Improve margin by approximately ${amount} per day",
        "impact.customer_loss": "Risk of losing 20-30% of price-sensitive customers",
        "impact.margin_loss": "Potential margin improvement of 5-10%",
        "impact.positive": "Maintain strong market position",
    },
}

FUEL_LABELS: Dict[str, Dict[FuelType, str]] = {
    "es": {
        FuelType.REGULAR: "Regular",
        FuelType.PREMIUM: "Premium",
        FuelType.DIESEL: "Diésel",
    },
    "en": {
        FuelType.REGULAR: "Regular",
        FuelType.PREMIUM: "Premium",
        FuelType.DIESEL: "Diesel",
    },
}


def resolve_locale(lang: Optional[str]) -> str:
    """Supported locale for lang, else the default."""
    if lang and lang.lower() in MESSAGES:
        return lang.lower()
    return DEFAULT_LOCALE


class TranslationService:
    """Template lookup and placeholder substitution."""

    def __init__(self, default_locale: Optional[str] = None):
        self.default_locale = resolve_locale(default_locale or settings.default_locale)

    def translate(self, key: str, lang: Optional[str] = None, **values) -> str:
        """
        Render the template for key in lang.

        Missing keys fall back to the default locale, then to the key itself.
        Placeholders without a value are left as-is.
        """
        locale = resolve_locale(lang) if lang else self.default_locale
        template = MESSAGES[locale].get(key) or MESSAGES[DEFAULT_LOCALE].get(key)
        if template is None:
            return key

        for name, value in values.items():
            template = template.replace("{" + name + "}", str(value))
        return template

    def fuel_label(self, fuel_type: FuelType, lang: Optional[str] = None) -> str:
        """Localized fuel name."""
        locale = resolve_locale(lang) if lang else self.default_locale
        return FUEL_LABELS[locale].get(fuel_type, fuel_type.value)


# Singleton instance
_translation_service: Optional[TranslationService] = None


def get_translation_service() -> TranslationService:
    """Get singleton instance of TranslationService."""
    global _translation_service
    if _translation_service is None:
        _translation_service = TranslationService()
    return _translation_service
