"""Policy-driven archiving of email into SuiteCRM."""

__version__ = "0.1.0"
