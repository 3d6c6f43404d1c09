"""Concert data sync orchestration."""

__version__ = "0.1.0"
