"""assho - a terminal dashboard for SSH hosts and their Docker containers."""

__version__ = "0.3.0"
