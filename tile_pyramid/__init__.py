"""
Tile Pyramid Builder

- Enumerates the Web-Mercator tiles covering a bounding box, from the requested
  zoom up to the grid's max zoom
- Fetches them concurrently from a `{z}/{x}/{y}` tile source (with retries)
- Persists them through a single writer into an MBTiles (SQLite) store
- Optional read-only HTTP view of a built store (server.py)

Entry point:
    python -m tile_pyramid.build --help
"""
