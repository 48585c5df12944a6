"""Project, application and escrow payment lifecycle for a freelance marketplace."""

__version__ = "0.1.0"
