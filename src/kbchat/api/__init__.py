"""
HTTP API for kbchat.
"""

from kbchat.api.app import create_app

__all__ = ["create_app"]
