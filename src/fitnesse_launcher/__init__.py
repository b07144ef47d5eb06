"""
fitnesse-launcher: drive a FitNesse wiki-testing server from a build pipeline.

Provides:
- Process control (fork, foreground launch, shutdown over HTTP)
- Symlink registration for test resource directories
- Wiki-format classpath rendering
"""

from __future__ import annotations

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml.
__version__ = "0.1.0"
