"""
Application export/import tool for API Manager environments.

Registers a dynamic client, obtains an access token, exports every
application of an environment into ``{owner}_{name}.zip`` archives and
replays those archives (with their OAuth key-manager bindings) into another
environment.
"""

__version__ = "0.1.0"
