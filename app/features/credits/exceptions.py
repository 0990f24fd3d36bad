class InsufficientCreditsError(Exception):
    """Raised when a user has no scan credits left to reserve."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Insufficient scan credits")
