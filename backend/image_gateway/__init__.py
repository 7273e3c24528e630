"""
Image generation gateway: validates requests against a model capability table,
forwards them to the upstream generation API and normalizes the response.
"""

__version__ = "2.0.0"

from image_gateway.main import create_app  # noqa: E402

__all__ = ["__version__", "create_app"]
