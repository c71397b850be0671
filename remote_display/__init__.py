"""
Remote Display - Live view of a remote screen image

Polls a display host for its current screen image and shows the newest
complete frame in the browser as a continuous live view.

Features:
- Continuous polling with at most one request in flight
- Automatic recovery with a fixed retry delay
- FPS derived from real frame arrival times
- Remembers the last display host

Usage:
    remote-display start --ip 192.168.1.100   # Start the viewer
    remote-display stop                        # Stop the viewer
    remote-display status                      # Check viewer status
    remote-display config                      # Show configuration
"""

__version__ = "1.0.0"
__author__ = "Remote Display"
