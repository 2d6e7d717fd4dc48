"""HTTP control plane."""

from stresspro.api.app import create_app

__all__ = ["create_app"]
