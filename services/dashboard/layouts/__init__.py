"""
Dashboard layout definitions.

Contains the main layout for the SafeTrack operator UI.

"""

from services.dashboard.layouts.main import create_main_layout, create_header, create_login_panel

__all__ = ["create_main_layout", "create_header", "create_login_panel"]
