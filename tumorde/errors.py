"""
Exceptions and warnings raised by tumorde.
"""


class EmptySelectionError(ValueError):
    """An identifier alignment left nothing to analyse."""


class NoOverlapError(EmptySelectionError):
    """Tumor and normal data share no gene of interest."""


class StatisticsEngineError(ValueError):
    """A statistics engine step could not be carried out."""


class PairingFallbackWarning(UserWarning):
    """Paired analysis was requested but no paired samples exist."""
