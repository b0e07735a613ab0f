from __future__ import annotations


class BirthdayBotError(Exception):
    pass


class ValidationError(BirthdayBotError, ValueError):
    pass


class InvalidBirthdayError(ValidationError):
    pass


class NotConfiguredError(BirthdayBotError):
    def __init__(self, community_id: int) -> None:
        super().__init__(f"Community {community_id} has not completed setup")
        self.community_id = community_id


class StoreIOError(BirthdayBotError):
    pass


class DeliveryError(BirthdayBotError):
    pass


class DestinationUnavailableError(DeliveryError):
    pass


class TimezoneResolutionError(BirthdayBotError):
    pass
