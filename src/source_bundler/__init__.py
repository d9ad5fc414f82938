"""Source Bundler - package feeds, docs sites and repos into source bundles."""

from importlib.metadata import version

from source_bundler.__main__ import _cli as main

__version__ = version("source-bundler")
__all__ = ["main", "__version__"]
