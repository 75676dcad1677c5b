"""PHI domain package.

Contains vault models, the PHI service, and adapters for recognizer, encryption,
and storage ports.
"""

from phivault.phi.db import Base
from phivault.phi.service import PHIService

__all__ = ["Base", "PHIService"]
