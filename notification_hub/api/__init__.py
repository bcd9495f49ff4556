"""HTTP API for notifications"""
