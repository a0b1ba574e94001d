"""
Smoke-locator test suite

Structure:
- unit/: Unit tests for individual components (geodesy, triangulation, compass, fix health, config, storage)
- integration/: End-to-end flows across components
"""
