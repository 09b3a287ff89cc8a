"""
REST API endpoints for the dashboard.

This package provides FastAPI routers for:
- Alerts: Active and archived alerts, export/import, cleanup
- Devices: Current readings, history, summary, polling control
- Notifications: Alert emails
- Session: Sign-in and theme
- Health: System health status
"""
