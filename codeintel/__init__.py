"""
codeintel — local code-intelligence cache.

Extracts lightweight structural facts from source files, turns each file
into a feature vector, persists both in SQLite, and answers similarity and
architectural-pattern queries over the stored corpus.

Public API for library usage::

    from codeintel import CodeAnalyzer, Config

    analyzer = CodeAnalyzer.from_config(Config.load())
    analyzer.analyze_file("src/app.js")
    hits = analyzer.find_similar_code("class Foo extends Bar {}")
"""

__version__ = "0.1.0"

from .config import Config
from .kb.analyzer import CodeAnalyzer

__all__ = ["CodeAnalyzer", "Config", "__version__"]
