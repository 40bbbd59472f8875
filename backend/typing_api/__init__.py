"""Typing speed test API"""
__version__ = "0.1.0"
