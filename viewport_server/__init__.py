"""
viewport_server - HTTP capture server rendering pages at multiple viewports
"""

from viewport_server.app import create_app

__all__ = ['create_app']
