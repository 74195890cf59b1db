class RedemptionServiceError(Exception):
    pass


class AlreadyRedeemedError(RedemptionServiceError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} has already been redeemed")
        self.transaction_id = transaction_id


class StoreError(RedemptionServiceError):
    pass


class LedgerError(RedemptionServiceError):
    pass


class GrantError(RedemptionServiceError):
    pass
