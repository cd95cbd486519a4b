"""
Error taxonomy shared by data models and similarity metrics.

Each error also subclasses the closest builtin so callers may catch either
the typed error or the builtin. Metrics never recover from any of these.
"""


class TasteError(Exception):
    """Base class for every error raised by tastesim."""


class InvalidArgumentError(TasteError, ValueError):
    """A required argument (usually an identifier) is missing."""


class UnsupportedCapabilityError(TasteError, NotImplementedError):
    """The component does not implement the requested optional capability."""


class DomainUndefinedError(TasteError, ArithmeticError):
    """The statistic has no defined value for otherwise valid inputs."""


class DataSourceError(TasteError):
    """The preference data source could not answer a query."""


class NoSuchUserError(DataSourceError):
    def __init__(self, user_id):
        super().__init__(f"No such user: {user_id!r}")
        self.user_id = user_id


class NoSuchItemError(DataSourceError):
    def __init__(self, item_id):
        super().__init__(f"No such item: {item_id!r}")
        self.item_id = item_id
