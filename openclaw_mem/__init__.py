"""openclaw-mem: persistent observation memory for OpenClaw sessions."""

__version__ = "0.1.0"
