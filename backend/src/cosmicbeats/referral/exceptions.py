"""Referral engine errors.

Every failure a caller can act on has its own class and a stable `code`,
which the API layer maps to a status and the UI to a message.
"""


class ReferralError(Exception):
    """Base class for referral engine errors."""

    code = "referral_error"


class SelfReferral(ReferralError):
    """Raised when a user tries to redeem their own code."""

    code = "self_referral"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} cannot refer themselves")


class QuotaExceeded(ReferralError):
    """Raised when the referrer used up this week's referrals."""

    code = "quota_exceeded"

    def __init__(self, referrer_id: str, limit: int):
        self.referrer_id = referrer_id
        self.limit = limit
        super().__init__(f"Referrer {referrer_id} reached the weekly limit of {limit} referrals")


class NotFound(ReferralError):
    code = "not_found"

    def __init__(self, referral_id: str):
        self.referral_id = referral_id
        super().__init__(f"Referral {referral_id} not found")


class AlreadyProcessed(ReferralError):
    """Raised when validating a referral that already left pending."""

    code = "already_processed"

    def __init__(self, referral_id: str, status: str):
        self.referral_id = referral_id
        self.status = status
        super().__init__(f"Referral {referral_id} is already {status}")


class ActionNotFound(ReferralError):
    code = "action_not_found"

    def __init__(self, referral_id: str, action_type: str):
        self.referral_id = referral_id
        self.action_type = action_type
        super().__init__(f"Referral {referral_id} has no {action_type} action")


class AlreadyCompleted(ReferralError):
    code = "already_completed"

    def __init__(self, referral_id: str, action_type: str):
        self.referral_id = referral_id
        self.action_type = action_type
        super().__init__(f"Action {action_type} on referral {referral_id} is already completed")


class Expired(ReferralError):
    """Raised when a referral's window closed before the request."""

    code = "expired"

    def __init__(self, referral_id: str):
        self.referral_id = referral_id
        super().__init__(f"Referral {referral_id} has expired")


class NotAuthorized(ReferralError):
    code = "not_authorized"

    def __init__(self, referral_id: str, actor: str):
        self.referral_id = referral_id
        self.actor = actor
        super().__init__(f"{actor} is not allowed to act on referral {referral_id}")


class WalletCreditFailed(ReferralError):
    """Raised when a wallet credit still fails after all retries.

    The ledger change that earned the credit is committed and the credit stays
    queued under its idempotency key until a retry settles it.
    """

    code = "wallet_credit_failed"

    def __init__(self, idempotency_keys: list[str]):
        self.idempotency_keys = idempotency_keys
        super().__init__(f"Wallet credit failed for {', '.join(idempotency_keys)}")
