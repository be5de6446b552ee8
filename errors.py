# errors.py
"""Error taxonomy for corpus evaluation.

ConfigurationError aborts a run before any image is touched. Everything
derived from SkippedItem is local to one corpus entry: the driver reports it
and carries on with the next image.
"""


class ConfigurationError(ValueError):
    pass


class SkippedItem(Exception):
    def __init__(self, identifier, reason):
        super().__init__(identifier, reason)
        self.identifier = identifier
        self.reason = reason

    def __str__(self):
        return f"{self.identifier}: {self.reason}"


class ResourceNotFound(SkippedItem):
    pass


class ParseError(SkippedItem):
    pass


class DimensionMismatch(SkippedItem):
    pass
