"""Attendance time-clock package.

Geofenced check-in/check-out sessions with punctuality classification in a
reference civil timezone, background location sampling and an auto-closer.
Organized by feature modules with a thin Flask controller layer on top of
service/repository layers.
"""
