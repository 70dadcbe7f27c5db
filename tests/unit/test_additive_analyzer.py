"""
Unit tests for the additive analyzer.
"""

import pytest

from transpareneats.services.additives import AdditiveAnalyzer, analyze_ingredients
from transpareneats.services.additives.rules import AdditiveRule, classify_e_number


class TestAdditiveAnalyzer:
    """Test rule matching and finding construction."""

    def test_mixed_ingredient_scenario(self):
        """Named compounds, dye names and raw E-numbers are all reported."""
        report = analyze_ingredients("Water, Monosodium Glutamate, Red 40, E250")
        by_code = {finding.code: finding for finding in report.additives}

        assert by_code["E621"].type == "flavor enhancer"
        assert by_code["E621"].concerns == ["headaches", "allergic reactions", "possible excitotoxin"]
        assert by_code["E250"].type == "preservative"
        assert by_code["E250"].concerns == [
            "may form carcinogenic nitrosamines",
            "linked to cancer risk",
        ]
        assert by_code["E129"].type == "color"

    def test_findings_ordered_by_rule_list(self):
        """Order follows the rule list, not the position in the text."""
        report = analyze_ingredients("Red 40, Monosodium Glutamate, E250")
        assert [finding.code for finding in report.additives] == ["E250", "E621", "E129"]

    def test_analysis_is_deterministic(self):
        text = "sugar, aspartame, e-330, BHT, xanthan gum, E 150d"
        assert analyze_ingredients(text) == analyze_ingredients(text)

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_input(self, text):
        assert analyze_ingredients(text).additives == []

    def test_repeated_matches_collapsed(self):
        report = analyze_ingredients("E330, citric acid (e330), E330")
        assert [finding.code for finding in report.additives] == ["E330"]

    def test_e_number_spellings_share_code(self):
        report = analyze_ingredients("colour: e 150d, acid: e-330")
        codes = [finding.code for finding in report.additives]
        assert codes == ["E150D", "E330"]
        assert report.additives[0].type == "color"
        assert report.additives[1].type == "antioxidant"

    def test_unknown_code_has_no_concerns(self):
        report = analyze_ingredients("xanthan gum")
        finding = report.additives[0]

        assert finding.code == "E415"
        assert finding.type == "thickener"
        assert finding.concerns == []

    def test_rule_without_code_uses_matched_text(self):
        report = analyze_ingredients("High Fructose Corn Syrup, water")
        finding = report.additives[0]

        assert finding.code == "high fructose corn syrup"
        assert finding.name == "high fructose corn syrup"
        assert finding.type == "sweetener"

    def test_msg_abbreviation_needs_word_boundary(self):
        assert analyze_ingredients("msg").additives[0].code == "E621"
        assert analyze_ingredients("msgx flakes").additives == []

    def test_custom_rules(self):
        analyzer = AdditiveAnalyzer(
            rules=[AdditiveRule(r"palm oil", "fat", "PALM")],
            concerns={"PALM": ["deforestation"]},
        )
        report = analyzer.analyze("Sugar, Palm Oil")

        assert len(report.additives) == 1
        assert report.additives[0].concerns == ["deforestation"]


class TestClassifyENumber:
    """Test functional class lookup for E-number codes."""

    @pytest.mark.parametrize("code,expected", [
        ("E102", "color"),
        ("E250", "preservative"),
        ("E322", "antioxidant"),
        ("E471", "thickener"),
        ("E500", "acidity regulator"),
        ("E621", "flavor enhancer"),
        ("E951", "sweetener"),
        ("E999", "e-number"),
    ])
    def test_ranges(self, code, expected):
        assert classify_e_number(code) == expected
