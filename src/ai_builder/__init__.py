"""
AI Builder - generation orchestration for AI agents.

Composes structured form input into prompts, optionally summarizes and
search-augments them, then runs the main completion and image generation
concurrently under a single cancellable scope.
"""

__version__ = "0.4.0"
__author__ = "AI Builder Team"
__license__ = "MIT"

__all__ = ["__version__"]
