"""Framework integrations.  Each submodule imports its framework on demand."""
