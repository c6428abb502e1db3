"""Letter-of-recommendation registry: students, approvers and the request/approve workflow."""

from .core.config import VERSION as __version__
