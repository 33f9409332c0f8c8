"""Database drivers and the backend used by the upload pipeline."""
