"""
Additive analyzer: derives structured warnings from free-text ingredient lists.
Pure and deterministic; findings are ordered by rule, then by first occurrence.
"""

import re
from typing import List, Optional, Pattern, Tuple

from transpareneats.models.product import AdditiveFinding, AdditiveReport
from transpareneats.services.additives.rules import (
    AdditiveRule,
    DEFAULT_RULES,
    ADDITIVE_CONCERNS,
    classify_e_number,
)


def _compact_e_number(match: str) -> str:
    """'e 250', 'e-250' and 'e250' all become 'E250'."""
    return re.sub(r"[\s-]", "", match).upper()


class AdditiveAnalyzer:
    """
    Scans ingredient text with an ordered list of detection rules.

    Every rule fires independently: a generic E-number match and a named
    compound match are both reported even when they describe the same
    additive. Only repeated matches of the same rule are collapsed.
    """

    def __init__(self, rules: Optional[List[AdditiveRule]] = None, concerns: Optional[dict] = None):
        self.rules = list(rules if rules is not None else DEFAULT_RULES)
        self.concerns = dict(concerns if concerns is not None else ADDITIVE_CONCERNS)
        self._compiled: List[Tuple[AdditiveRule, Pattern]] = [
            (rule, re.compile(rule.pattern, re.IGNORECASE)) for rule in self.rules
        ]

    def analyze(self, text: Optional[str]) -> AdditiveReport:
        if not text:
            return AdditiveReport()

        ingredients = text.lower()
        findings: List[AdditiveFinding] = []

        for rule, pattern in self._compiled:
            seen = []
            for match in pattern.finditer(ingredients):
                name = match.group(0).strip()
                if name and name not in seen:
                    seen.append(name)

            for name in seen:
                findings.append(self._build_finding(rule, name))

        return AdditiveReport(additives=findings)

    def concerns_for(self, code: str) -> List[str]:
        """Known concerns for a code; unknown codes have none."""
        return list(self.concerns.get(code.upper(), []))

    def _build_finding(self, rule: AdditiveRule, name: str) -> AdditiveFinding:
        if rule.generic_e_number:
            code = _compact_e_number(name)
            additive_type = classify_e_number(code)
        else:
            code = rule.code or name
            additive_type = rule.type

        return AdditiveFinding(
            name=name,
            type=additive_type,
            code=code,
            concerns=self.concerns_for(code)
        )


default_analyzer = AdditiveAnalyzer()


def analyze_ingredients(text: Optional[str]) -> AdditiveReport:
    """Analyze ingredient text with the default rule set."""
    return default_analyzer.analyze(text)
