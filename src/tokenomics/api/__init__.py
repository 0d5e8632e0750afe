"""HTTP surface: range reads for the dashboard and the indexing trigger."""

from tokenomics.api.app import create_app

__all__ = ["create_app"]
