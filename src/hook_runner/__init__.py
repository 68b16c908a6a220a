"""Gitea push webhook to local command bridge."""

__version__ = "0.3.0"
