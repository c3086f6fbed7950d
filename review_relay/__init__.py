"""
GitHub Pull Request Review Relay

A GitHub App webhook service that asks an LLM to review newly opened
pull requests and posts the answer back as a PR comment.
"""

__version__ = "1.0.0"
__author__ = "Review Relay Team"
