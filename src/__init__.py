"""frame-extract source package."""
