"""Request-independent operations on the schema store.

Each function takes an ``AsyncSession`` and plain inputs, so route
handlers stay thin and the logic is testable without HTTP.
"""
