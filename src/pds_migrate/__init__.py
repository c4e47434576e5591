"""PDS Migration Tool

Moves an AT Protocol account (repository, blobs, preferences and PLC
identity) from one Personal Data Server to another.
"""

__version__ = '0.1.0'

from .cli import main

__all__ = ['main']
