"""
GPS Tracker Relay package.

This package contains the service that:
- accepts location/telemetry reports from a tracker device over HTTP
- keeps the latest report as shared state
- detects sustained movement over a short window of reports
- sends rate-limited movement alerts by email
- pushes every report to live observers over a WebSocket
"""
