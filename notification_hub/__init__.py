"""Notification Hub: notification lifecycle engine with broker dispatch and realtime fan-out"""

__version__ = "1.0.0"
