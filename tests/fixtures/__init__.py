"""
Shared test helpers for the CurseArchive suite.

- http_mocking: fake manifest host / file CDN and catalog builders
"""
