"""
API route modules.
"""

from psdbridge.routes.documents import router as documents_router

__all__ = [
    "documents_router",
]
