from headshot_api.models.user_credits import LedgerRecord, LedgerResponse, UserCredits

__all__ = [
    "LedgerRecord",
    "LedgerResponse",
    "UserCredits",
]
