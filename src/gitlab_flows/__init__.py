"""GitLab reporting flows: weekly pulse digests and merge request reviews."""

__version__ = "0.1.0"
