"""Archive pipeline and backup engine."""
