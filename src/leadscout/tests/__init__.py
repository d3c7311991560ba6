"""
Lead Scout Test Package.

Test categories:
- test_config.py: Configuration and environment variable loading
- test_models.py: Pydantic model validation
- test_places.py: Places directory adapter and sample source
- test_website.py: Domain guessing and probe handling
- test_aggregator.py: Website presence finalization and the search pipeline
- test_scoring.py: Lead score, filters and sort orders
- test_storage.py: Key/value store lifecycle
- test_leads.py, test_projects.py, test_notes.py: Local collections
- test_export.py: CSV and e-mail digest formatting
- test_api.py: HTTP surface
- test_main.py: Command-line interface
"""

__all__ = []
