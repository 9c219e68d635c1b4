"""Parquet map viewer backend.

This package turns columnar Parquet files into GeoJSON FeatureCollections
that a web map can render directly. Files are fetched from a URL or
uploaded, decoded with pyarrow (falling back to zstd decompression when the
raw bytes are not a readable Parquet file), and every row's geometry is
decoded from whichever representation it uses.

- Geometry columns are discovered by conventional name, with a
  latitude/longitude fallback
- Geometry cells may be WKB, hex WKB, GeoJSON text or GeoJSON objects
- Rows without usable geometry are dropped; a file with none fails
- Served by FastAPI, together with the initial map view for each file

See module sub-docstrings for details on each pipeline stage.
"""
