"""
ICON-DC Error Types

Per-word failures raised while searching for or saving icons. Every one of
them is fatal to a single word only; the job executor turns them into a
failed WordOutcome and the batch keeps going.
"""


class IconJobError(Exception):
    """Base class for failures scoped to one word."""

    def __init__(self, word: str, reason: str):
        super().__init__(reason)
        self.word = word
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


class DirectoryError(IconJobError):
    """The word directory could not be created."""


class SearchFailure(IconJobError):
    """Search request failed or returned no usable icons."""


class FetchFailure(IconJobError):
    """One icon could not be downloaded or written to disk."""

    def __init__(self, word: str, reason: str, url: str = "", status_code=None):
        super().__init__(word, reason)
        self.url = url
        self.status_code = status_code
