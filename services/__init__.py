"""
Service entry points for the SafeTrack monitor.

Each subdirectory contains a standalone service.

Services:
    monitor: Headless telemetry poller and alert detector
    dashboard: FastAPI JSON API with the Plotly Dash operator UI
"""
