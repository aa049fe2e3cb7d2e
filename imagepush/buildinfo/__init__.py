"""Build-info collection module.

This module handles:
- Assembling build-info modules from resolved layers
- Persisting build general details and modules
- Reading back collected build-info
"""

from imagepush.buildinfo.models import (
    BuildModuleRecord,
    BuildRecord,
    ModuleArtifactRecord,
)

__all__ = ["BuildModuleRecord", "BuildRecord", "ModuleArtifactRecord"]

# Access the assembler and store via imagepush.buildinfo.assembler and
# imagepush.buildinfo.store to avoid circular imports
