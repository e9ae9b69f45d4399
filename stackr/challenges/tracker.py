"""
Challenge Progress Tracker

The only way a challenge changes after it is generated.

apply() is a pure function: it takes a snapshot plus one contribution and
returns a new snapshot. The caller persists the result and must serialize
calls per challenge id (see ChallengeFlow.record_contribution).

Rules applied per contribution, in order:
1. Terminal challenges are returned unchanged
2. Contributions dated before the last contribution day are rejected
3. Amount and progress are updated; reaching the target completes it
4. Streak follows the consecutive-calendar-day law
5. Newly crossed milestones are achieved (never un-achieved)
6. Streak bonus thresholds hit exactly unlock a streak achievement
7. A contribution after the end date closes an unfinished challenge
"""

from datetime import datetime
from typing import Optional

from stackr.challenges.catalog import STREAK_BONUSES, round_half_up
from stackr.models.challenge import (
    Achievement,
    Challenge,
    ChallengeStatus,
    DailyTargetState,
)


class OutOfOrderContributionError(ValueError):
    """A contribution is dated before the challenge's last contribution day."""

    def __init__(self, date: datetime, last_contribution_date: datetime):
        self.date = date
        self.last_contribution_date = last_contribution_date
        super().__init__(
            f"Contribution dated {date.date().isoformat()} is earlier than the "
            f"last contribution on {last_contribution_date.date().isoformat()}"
        )


class InvalidContributionError(ValueError):
    """A contribution amount is negative."""

    def __init__(self, amount: float):
        self.amount = amount
        super().__init__(f"Contribution amount cannot be negative: {amount}")


def truncate_to_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def next_streak(
    streak_count: int,
    last_contribution_date: Optional[datetime],
    date: datetime,
) -> int:
    """
    Streak after a contribution on `date`.

    Same calendar day keeps the streak, the next calendar day extends it,
    anything else starts over at 1.
    """
    if last_contribution_date is None:
        return 1

    diff_days = abs((truncate_to_day(date) - truncate_to_day(last_contribution_date)).days)
    if diff_days == 0:
        return streak_count
    if diff_days == 1 and date >= last_contribution_date:
        return streak_count + 1
    return 1


class ChallengeProgressTracker:
    """Applies contributions to challenge snapshots."""

    def apply(
        self,
        challenge: Challenge,
        amount: float,
        date: Optional[datetime] = None,
    ) -> Challenge:
        """
        Apply one contribution.

        Args:
            challenge: Current snapshot (left untouched)
            amount: Amount saved
            date: When it was saved (defaults to now)

        Returns:
            The new snapshot, or `challenge` itself if it is terminal

        Raises:
            InvalidContributionError: If `amount` is negative
            OutOfOrderContributionError: If `date` falls on a calendar day
                before the last contribution
        """
        if challenge.is_terminal:
            return challenge

        if amount < 0:
            raise InvalidContributionError(amount)

        date = date or datetime.now()
        last = challenge.last_contribution_date
        if last is not None and truncate_to_day(date) < truncate_to_day(last):
            raise OutOfOrderContributionError(date, last)

        updated = challenge.model_copy(deep=True)
        updated.current_amount += amount
        if updated.target_amount > 0:
            updated.progress = max(0, min(
                100,
                round_half_up(updated.current_amount / updated.target_amount * 100),
            ))
        else:
            updated.progress = 100

        if updated.current_amount >= updated.target_amount:
            updated.status = ChallengeStatus.COMPLETED
            updated.completed_date = date
            updated.achievements.append(Achievement(
                id="challenge-complete",
                name="Challenge Champion",
                description="Successfully completed a savings challenge",
                date=date,
                icon="🏆",
            ))

        previous_streak = updated.streak_count
        updated.streak_count = next_streak(previous_streak, last, date)
        updated.last_contribution_date = date

        self._record_daily_target(updated, amount, date)
        self._unlock_milestones(updated, date)
        # A second contribution on the same day does not earn the bonus again
        if updated.streak_count != previous_streak:
            self._unlock_streak_bonus(updated, date)

        if date > updated.end_date and updated.status is not ChallengeStatus.COMPLETED:
            if updated.progress >= 80:
                updated.status = ChallengeStatus.PARTIALLY_COMPLETED
                updated.achievements.append(Achievement(
                    id="almost-there",
                    name="Almost There",
                    description="Reached at least 80% of your savings goal",
                    date=date,
                    icon="👏",
                ))
            else:
                updated.status = ChallengeStatus.FAILED

        return updated

    def _record_daily_target(
        self,
        challenge: Challenge,
        amount: float,
        date: datetime,
    ) -> None:
        day = truncate_to_day(date)
        for target in challenge.daily_targets:
            if target.state is not DailyTargetState.PENDING:
                continue
            if truncate_to_day(target.date) != day:
                continue
            target.contributed += amount
            if target.contributed >= target.amount:
                target.state = DailyTargetState.SATISFIED
            break

    def _unlock_milestones(self, challenge: Challenge, date: datetime) -> None:
        for milestone in challenge.milestones:
            if milestone.achieved or challenge.current_amount < milestone.amount:
                continue
            milestone.achieved = True
            milestone.achieved_date = date
            challenge.achievements.append(Achievement(
                id=f"milestone-{milestone.id}",
                name=f"{milestone.name} Reached",
                description=f"Reached the {milestone.name} milestone",
                date=date,
                icon=milestone.icon or "🎯",
            ))

    def _unlock_streak_bonus(self, challenge: Challenge, date: datetime) -> None:
        for bonus in STREAK_BONUSES:
            if bonus.days != challenge.streak_count:
                continue
            challenge.achievements.append(Achievement(
                id=f"streak-{bonus.days}",
                name=f"{bonus.days}-Day Streak",
                description=f"Maintained a {bonus.days}-day savings streak",
                date=date,
                icon="🔥",
                bonus_points=bonus.bonus,
            ))
