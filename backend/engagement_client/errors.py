class EngagementAPIError(Exception):
    """Non-2xx answer from the engagement API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class SelfFollowError(ValueError):
    """Raised before any network call when a user tries to follow themselves."""

    def __init__(self, user_id):
        super().__init__("Users cannot follow themselves")
        self.user_id = user_id

