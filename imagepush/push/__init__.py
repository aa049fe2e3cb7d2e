"""Push orchestration module.

This module handles:
- Running the engine push
- Selecting digest- or tag-based layer resolution
- Collecting build-info for the pushed layers
- Producing the transfer manifest for a detailed summary
"""

from imagepush.push.manifest import PushResult

__all__ = ["PushResult"]

# Access the orchestrator via imagepush.push.service to avoid circular
# imports with imagepush.buildinfo.assembler
