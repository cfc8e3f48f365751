"""
viewport_cli - command line front end for multi-viewport scans
"""

from viewport_cli.main import main

__all__ = ['main']
