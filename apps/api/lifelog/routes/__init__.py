"""Route modules."""

from .admin import router as admin_router
from .auth import router as auth_router
from .dashboard import router as dashboard_router
from .records import build_record_router, record_routers

__all__ = ["admin_router", "auth_router", "build_record_router", "dashboard_router", "record_routers"]
