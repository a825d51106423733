"""Tests for categorization rules."""

from ledgerline.rules import CategorizationRule, MatchType, find_matching_rule


class TestCategorizationRule:
    """Tests for rule matching."""

    def test_from_api(self, rules):
        rule = CategorizationRule.from_api(rules[1])

        assert rule.name == "Staples"
        assert rule.match_type is MatchType.STARTS_WITH
        assert rule.account_id == 5020
        assert rule.memo == "Office supplies"

    def test_unknown_match_type_defaults_to_contains(self):
        rule = CategorizationRule.from_api({"pattern": "x", "match_type": "regex"})

        assert rule.match_type is MatchType.CONTAINS

    def test_contains_is_case_insensitive(self):
        rule = CategorizationRule(1, "Adobe", "adobe", 5030)

        assert rule.matches("ADOBE *CREATIVE CLOUD")
        assert not rule.matches("Staples")

    def test_exact(self):
        rule = CategorizationRule(1, "Rent", "Monthly Rent", 5100, MatchType.EXACT)

        assert rule.matches("monthly rent")
        assert not rule.matches("Monthly Rent June")

    def test_starts_with(self):
        rule = CategorizationRule(1, "Staples", "staples", 5020, MatchType.STARTS_WITH)

        assert rule.matches("STAPLES #221")
        assert not rule.matches("POS STAPLES")

    def test_empty_pattern_never_matches(self):
        rule = CategorizationRule(1, "Blank", "", 5020)

        assert not rule.matches("anything")


class TestFindMatchingRule:
    """Tests for find_matching_rule."""

    def test_first_match_wins(self, rules):
        parsed = [CategorizationRule.from_api(rule) for rule in rules]
        parsed.append(CategorizationRule(3, "Any Staples", "STAPLES", 5999))

        match = find_matching_rule(parsed, "STAPLES #221 TORONTO")

        assert match.name == "Staples"

    def test_no_description(self, rules):
        parsed = [CategorizationRule.from_api(rule) for rule in rules]

        assert find_matching_rule(parsed, None) is None
        assert find_matching_rule(parsed, "Tim Hortons") is None
