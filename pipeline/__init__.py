"""
CityAir — Data Pipeline Package.

Components:
    - cache: in-memory TTL cache shared by pages and descriptions
    - ingestion: pollution API connector and city record validator
    - enrichment: Wikipedia connector and rate-limited description queue
    - main: page orchestrator (fetch, classify, sort, paginate, enrich, cache)
"""
