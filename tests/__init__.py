"""
Tile Pyramid Builder test suite.

Structure:
- unit/: projection, enumeration, store, source, retry, pipeline, API
- integration/: full builds against an in-process tile source, and the CLI
"""
