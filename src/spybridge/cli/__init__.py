"""spybridge command-line interface."""
