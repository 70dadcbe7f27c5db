from .analyzer import AdditiveAnalyzer, analyze_ingredients, default_analyzer
from .rules import AdditiveRule, DEFAULT_RULES, ADDITIVE_CONCERNS, classify_e_number

__all__ = [
    "AdditiveAnalyzer",
    "analyze_ingredients",
    "default_analyzer",
    "AdditiveRule",
    "DEFAULT_RULES",
    "ADDITIVE_CONCERNS",
    "classify_e_number",
]
