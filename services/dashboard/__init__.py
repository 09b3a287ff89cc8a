"""SafeTrack dashboard service: JSON API and Dash operator UI."""
