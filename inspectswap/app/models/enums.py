"""
Marketplace enumerations.

Defines ledger entry kinds and bounty lifecycle states.
"""

import enum


class LedgerEntryKind(str, enum.Enum):
    """
    Ledger entry kind enumeration.

    Kinds:
        SIGNUP_BONUS: One-time welcome credit
        UPLOAD: Reward for uploading a new report
        DOWNLOAD: Cost of unlocking someone else's report
        BOUNTY_STAKE: Stake taken when a bounty is created (negative),
            or refunded when it is cancelled (positive)
        BOUNTY_EARNED: Stake transferred to the uploader who fulfilled a bounty
    """
    SIGNUP_BONUS = "signup_bonus"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    BOUNTY_STAKE = "bounty_stake"
    BOUNTY_EARNED = "bounty_earned"


class BountyStatus(str, enum.Enum):
    """Bounty status enumeration. OPEN -> FULFILLED | CANCELLED, both terminal."""
    OPEN = "open"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
