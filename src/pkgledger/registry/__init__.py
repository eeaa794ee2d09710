"""Network access to package repositories.

Public API::

    from pkgledger.registry.http_client import fetch_json, download_file
"""

from __future__ import annotations

from pkgledger.registry.http_client import download_file, fetch_json

__all__ = [
    "download_file",
    "fetch_json",
]
