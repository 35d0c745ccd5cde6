"""codoc-sync: reconcile a declarative schema tree against the file system."""

__version__ = "0.4.0"
