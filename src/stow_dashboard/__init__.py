"""
Stow Dashboard - incremental inventory of the software projects on a developer machine.

Walks configured root directories, decides where projects begin and end, enriches
each project with git history and size metadata, and keeps a line-delimited JSON
snapshot that doubles as the staleness cache for the next scan.
"""

__version__ = "0.4.2"
__author__ = "Stow Dashboard contributors"
