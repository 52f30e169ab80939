"""
Ready-made data handlers.

    EchoHandler   replies with whatever it receives, closes on "quit"
"""

from .echo import EchoHandler

__all__ = ["EchoHandler"]
