"""API router subpackage for the Parquet map viewer backend.

Submodules:
    - parquet: Endpoints returning FeatureCollections and initial map views
      for Parquet files given by URL or uploaded directly.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.
"""
