"""Service layer for business logic.

Services hold the catalog's policy (ownership, category references,
statistics) and keep routes thin.

Layer hierarchy:
    Routes (HTTP) -> Services (Policy) -> Repositories (Database)

Services should:
- Scope every read and write to the acting owner
- Orchestrate calls to repositories
- Raise domain errors from services.exceptions

Services should NOT:
- Build SQL directly (use repositories)
- Know about HTTP status codes or response formatting
"""
