"""Reader, rule registries and the upload pipeline."""
