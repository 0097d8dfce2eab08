from .karma_entry import KarmaEntry, KarmaType
from .weight_rule import WeightRule
from .habit_suggestion import HabitSuggestion
from .karma_pattern import KarmaPattern
from .score_summary import KarmaScoreSummary
from .customer import Customer

__all__ = [
    "KarmaEntry",
    "KarmaType",
    "WeightRule",
    "HabitSuggestion",
    "KarmaPattern",
    "KarmaScoreSummary",
    "Customer",
]
