"""
Service layer for the incubator admin API.

Modules:
    accounts   - login sessions, token resolution, admin bootstrap
    guests     - guest account CRUD with uniqueness checks
    startups   - startup CRUD, nested collections, stats, import

Services take an ``AsyncSession`` and raise ``backend.errors`` exceptions;
they never look at roles.
"""
