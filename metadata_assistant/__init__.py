"""AI-assisted review and editing of DANDI dandiset metadata."""

from .services.session import CommitResult, EditingSession

__version__ = "1.0.0"

__all__ = ["EditingSession", "CommitResult", "__version__"]
