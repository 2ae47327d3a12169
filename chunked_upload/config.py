"""
Application settings entry point.

Modules import ``settings`` from here rather than talking to the configuration
manager directly.
"""

from chunked_upload.core.config import config_manager

settings = config_manager.settings

# Width of the zero-padded chunk number in chunk file names
CHUNK_NUMBER_WIDTH = 6

# Length of the identifier prefix used to keep merged file names unique
FINAL_NAME_PREFIX_LENGTH = 12
