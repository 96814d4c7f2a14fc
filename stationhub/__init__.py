"""
stationhub: download, install, launch and clean up versioned game builds.
"""

__version__ = "0.4.0"
