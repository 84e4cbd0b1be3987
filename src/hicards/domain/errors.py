class HiCardsError(Exception):
    """Base class for hicards errors."""


class PersistenceError(HiCardsError):
    """A save or load through the persistence gateway failed."""


class FeedError(HiCardsError):
    """A highlight feed could not be read or has the wrong shape."""
