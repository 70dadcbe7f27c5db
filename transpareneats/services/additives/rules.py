"""
Reference tables for additive detection.
Patterns are matched against lower-cased ingredient text.
"""

from dataclasses import dataclass
from typing import Optional, Dict, List, Tuple

E_NUMBER_TYPE = "e-number"


@dataclass(frozen=True)
class AdditiveRule:
    """Detection rule: a regex plus the label attached to every match."""
    pattern: str
    type: str
    code: Optional[str] = None
    generic_e_number: bool = False


DEFAULT_RULES: List[AdditiveRule] = [
    # Any E-number token: E followed by three digits and an optional letter
    AdditiveRule(r"\be[\s-]?\d{3}[a-z]?\b", E_NUMBER_TYPE, generic_e_number=True),

    AdditiveRule(r"monosodium glutamate|\bmsg\b", "flavor enhancer", "E621"),
    AdditiveRule(r"aspartame", "sweetener", "E951"),
    AdditiveRule(r"sodium nitrite", "preservative", "E250"),
    AdditiveRule(r"sodium benzoate", "preservative", "E211"),
    AdditiveRule(r"\bbht\b|butylated hydroxytoluene", "antioxidant", "E321"),
    AdditiveRule(r"\bbha\b|butylated hydroxyanisole", "antioxidant", "E320"),
    AdditiveRule(r"carrageenan", "thickener", "E407"),
    AdditiveRule(r"high fructose corn syrup|\bhfcs\b", "sweetener"),
    AdditiveRule(r"partially hydrogenated", "trans fat"),
    AdditiveRule(r"artificial colou?r", "color"),
    AdditiveRule(r"artificial flavou?r", "flavor"),
    AdditiveRule(r"saccharin", "sweetener", "E954"),
    AdditiveRule(r"sucralose", "sweetener", "E955"),
    AdditiveRule(r"xanthan gum", "thickener", "E415"),
    AdditiveRule(r"potassium sorbate", "preservative", "E202"),
    AdditiveRule(r"calcium propionate", "preservative", "E282"),
    AdditiveRule(r"sodium nitrate", "preservative", "E251"),
    AdditiveRule(r"sulfite|sulphite", "preservative"),
    AdditiveRule(r"phosphoric acid", "acidity regulator", "E338"),

    # Artificial food dyes (US names and common aliases)
    AdditiveRule(r"\bred\s?40\b|allura red", "color", "E129"),
    AdditiveRule(r"\byellow\s?5\b|tartrazine", "color", "E102"),
    AdditiveRule(r"\byellow\s?6\b|sunset yellow", "color", "E110"),
    AdditiveRule(r"\bblue\s?1\b|brilliant blue", "color", "E133"),
    AdditiveRule(r"\bblue\s?2\b|indigo carmine", "color", "E132"),
    AdditiveRule(r"\bgreen\s?3\b|fast green", "color", "E143"),
    AdditiveRule(r"\bred\s?3\b|erythrosine", "color", "E127"),
]


ADDITIVE_CONCERNS: Dict[str, List[str]] = {
    "E621": ["headaches", "allergic reactions", "possible excitotoxin"],
    "E951": ["headaches", "suspected carcinogen", "neurological effects"],
    "E250": ["may form carcinogenic nitrosamines", "linked to cancer risk"],
    "E211": ["potential allergen", "hyperactivity in children"],
    "E321": ["potential endocrine disruptor", "allergic reactions"],
    "E320": ["potential endocrine disruptor", "allergic reactions"],
    "E407": ["gut inflammation", "digestive issues"],
    "E954": ["suspected carcinogen", "digestive issues"],
    "E955": ["may affect gut microbiome", "digestive issues"],
    "E102": ["hyperactivity in children", "allergic reactions"],
    "E110": ["hyperactivity in children"],
    "E129": ["hyperactivity in children"],
}


# E-number ranges by functional class, used to label generic E-number matches
E_NUMBER_CLASSES: List[Tuple[int, int, str]] = [
    (100, 199, "color"),
    (200, 299, "preservative"),
    (300, 399, "antioxidant"),
    (400, 499, "thickener"),
    (500, 599, "acidity regulator"),
    (600, 699, "flavor enhancer"),
    (950, 969, "sweetener"),
]


def classify_e_number(code: str) -> str:
    """Functional class of an E-number code such as 'E250' or 'E150d'."""
    digits = "".join(ch for ch in code if ch.isdigit())
    if not digits:
        return E_NUMBER_TYPE

    number = int(digits)
    for low, high, additive_type in E_NUMBER_CLASSES:
        if low <= number <= high:
            return additive_type
    return E_NUMBER_TYPE
