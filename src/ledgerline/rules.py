"""Description-matching rules that pre-categorize transactions."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class MatchType(str, Enum):
    CONTAINS = "contains"
    EXACT = "exact"
    STARTS_WITH = "starts_with"


@dataclass(frozen=True)
class CategorizationRule:
    """Assigns an account (and optionally a tax code and memo) by description."""

    id: Any
    name: str
    pattern: str
    account_id: Any
    match_type: MatchType = MatchType.CONTAINS
    tax_code: str | None = None
    memo: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CategorizationRule":
        try:
            match_type = MatchType(data.get("match_type") or MatchType.CONTAINS.value)
        except ValueError:
            match_type = MatchType.CONTAINS
        return cls(
            id=data.get("id"),
            name=str(data.get("rule_name") or data.get("name") or ""),
            pattern=str(data.get("pattern") or ""),
            account_id=data.get("account_id"),
            match_type=match_type,
            tax_code=data.get("tax_code"),
            memo=data.get("memo"),
        )

    def matches(self, description: str) -> bool:
        """Case-insensitive match of a transaction description.

        A rule with an empty pattern never matches.
        """
        if not self.pattern:
            return False
        text = description.lower()
        pattern = self.pattern.lower()
        if self.match_type is MatchType.EXACT:
            return text == pattern
        if self.match_type is MatchType.STARTS_WITH:
            return text.startswith(pattern)
        return pattern in text


def find_matching_rule(
    rules: Iterable[CategorizationRule], description: str | None
) -> CategorizationRule | None:
    """First rule matching the description, in the order given."""
    if not description:
        return None
    return next((rule for rule in rules if rule.matches(description)), None)
