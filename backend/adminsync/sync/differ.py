"""
Snapshot comparison for the two notifying collections.

Both differs are pure: they read the previous and the new snapshot and
return the list of ChangeRecords for items that just became actionable.
Neither input is modified.
"""

import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from adminsync.models.notification import ChangeKind, ChangeRecord
from adminsync.models.profile import CreditStatus, GameProfile, ProfileStatus, UserProfileRecord
from adminsync.models.withdrawal import Withdrawal


def now_ms() -> int:
    return int(time.time() * 1000)


def flatten_profiles(records: Iterable[UserProfileRecord]) -> List[GameProfile]:
    """Expand server records into one GameProfile per (user, game) pair"""
    rows = []
    for record in records:
        user_id = record.identity
        if user_id is None:
            continue
        email = record.user_data.email if record.user_data and record.user_data.email else "No email"
        for game in record.games:
            # A row without a game name has no key to compare on.
            if not game.game_name:
                continue
            credit = game.credit_amount
            rows.append(
                GameProfile(
                    user_id=user_id,
                    game_name=game.game_name,
                    username=record.username,
                    email=email,
                    game_id=game.game_id,
                    profile_status=game.profile_status,
                    credit_status=credit.status if credit else CreditStatus.NONE.value,
                    credit_amount=credit.amount if credit else 0,
                    requested_amount=credit.requested_amount if credit else 0,
                )
            )
    return rows


def _entered(old_value: Optional[str], new_value: Optional[str], target: str) -> bool:
    return old_value != target and new_value == target


def diff_profiles(
    old: Sequence[GameProfile],
    new: Sequence[GameProfile],
    timestamp: Optional[int] = None,
) -> List[ChangeRecord]:
    # Cold start: with no previous snapshot everything would look new.
    if not old:
        return []

    ts = now_ms() if timestamp is None else timestamp
    previous: Dict[Tuple[str, str], Tuple[Optional[str], str]] = {
        profile.key: (profile.profile_status, profile.credit_status) for profile in old
    }

    records = []
    for profile in new:
        def record(kind: ChangeKind) -> None:
            records.append(ChangeRecord(kind=kind, username=profile.username, context=profile.game_name, timestamp=ts))

        before = previous.get(profile.key)
        if before is None:
            if profile.profile_status == ProfileStatus.PENDING.value:
                record(ChangeKind.GAME_ID)
            if profile.credit_status == CreditStatus.PENDING.value:
                record(ChangeKind.CREDIT)
            if profile.credit_status == CreditStatus.PENDING_REDEEM.value:
                record(ChangeKind.REDEEM)
            continue

        old_profile_status, old_credit_status = before
        if _entered(old_profile_status, profile.profile_status, ProfileStatus.PENDING.value):
            record(ChangeKind.GAME_ID)
        if _entered(old_credit_status, profile.credit_status, CreditStatus.PENDING.value):
            record(ChangeKind.CREDIT)
        if _entered(old_credit_status, profile.credit_status, CreditStatus.PENDING_REDEEM.value):
            record(ChangeKind.REDEEM)

    return records


def diff_withdrawals(
    old: Sequence[Withdrawal],
    new: Sequence[Withdrawal],
    timestamp: Optional[int] = None,
) -> List[ChangeRecord]:
    """Unlike profiles, an empty previous snapshot does not suppress: every
    pending withdrawal in the first non-empty batch is reported."""
    ts = now_ms() if timestamp is None else timestamp
    known = {w.identity for w in old}
    return [
        ChangeRecord(kind=ChangeKind.WITHDRAWAL, username=w.display_name, context=w.amount, timestamp=ts)
        for w in new
        if w.is_pending and w.identity not in known
    ]


def count_pending_items(profiles: Iterable[GameProfile]) -> int:
    """Rows waiting on an admin: game id, credit or redeem"""
    return sum(
        1
        for p in profiles
        if p.profile_status == ProfileStatus.PENDING.value
        or p.credit_status in (CreditStatus.PENDING.value, CreditStatus.PENDING_REDEEM.value)
    )


def count_pending_withdrawals(withdrawals: Iterable[Withdrawal]) -> int:
    return sum(1 for w in withdrawals if w.is_pending)
