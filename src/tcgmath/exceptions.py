class TCGMathError(Exception):
    """Base class for errors raised by tcgmath."""


class StorageError(TCGMathError):
    """The key-value backend could not be read or written."""


class SaveCollectionError(StorageError):
    """Writing the collection record failed (backend down, quota exceeded)."""


class CardSourceError(TCGMathError):
    """A card API answered with an error or an unusable payload."""


class NotEnoughCardsError(CardSourceError):
    """Too few playable cards survived filtering. The caller should try again."""
