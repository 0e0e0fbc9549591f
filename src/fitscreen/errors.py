"""
Exceptions raised by fitscreen.

Each exception subclasses the builtin that would otherwise be raised, so
code catching ``ValueError`` or ``FileExistsError`` keeps working.
"""


class ShapeMismatch(ValueError):
    """
    A lineage is missing observations at some time point, or an array does
    not have the dimensionality a model expects.
    """


class AlreadyProcessed(FileExistsError):
    """
    The output artifact for a run already exists.
    """


class MissingDependency(ValueError):
    """
    A model that needs replicate information was requested without a
    replicate column.
    """


class InvalidMode(ValueError):
    """
    Unrecognized fitting-strategy flag.
    """


class InsufficientColors(ValueError):
    """
    Fewer palette entries than quantile levels (or chains) to draw.
    """


class LabelCountMismatch(ValueError):
    """
    Number of labels does not match the number of parameters.
    """


class DegenerateCounts(ValueError):
    """
    Count data would feed a zero frequency into a ratio or a log.
    """
