"""
Streak tracking.
Derives the new current/longest streak from the last completion date.
"""
from datetime import date, timedelta
from typing import NamedTuple, Optional


class StreakUpdate(NamedTuple):
    current_streak: int
    longest_streak: int


class StreakTracker:
    """Pure streak continuation rules"""

    @staticmethod
    def advance(
        last_completed_date: Optional[date],
        today: date,
        current_streak: int,
        longest_streak: int
    ) -> StreakUpdate:
        """
        Compute the streak after a completion on `today`.

        - Last completion yesterday: streak continues (+1)
        - Last completion today: unchanged, a second completion the same day
          does not count twice
        - Otherwise (gap or first completion): streak restarts at 1

        Longest streak never decreases.

        Args:
            last_completed_date: Date of the previous completion, if any
            today: Date of this completion
            current_streak: Current streak before this completion
            longest_streak: Longest streak before this completion

        Returns:
            StreakUpdate with the new current and longest streak
        """
        current_streak = current_streak or 0
        longest_streak = longest_streak or 0

        if last_completed_date == today - timedelta(days=1):
            new_current = current_streak + 1
        elif last_completed_date == today:
            # Legacy rows may hold 0 here; a completion today is at least a 1-day streak
            new_current = max(current_streak, 1)
        else:
            new_current = 1

        return StreakUpdate(new_current, max(longest_streak, new_current))
