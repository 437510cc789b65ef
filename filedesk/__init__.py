"""FileDesk: edit GitHub-hosted files from a small web dashboard."""

__version__ = "0.1.0"
