"""
FarmInvest API package.

Modules:
- config: environment-driven settings
- db: PostgreSQL connection pool + query helpers
- auth_utils: password hashing and JWT auth helpers
- validators: request body validation
- schemas: Pydantic models for the REST API
- main: FastAPI application and routes
- seed: demo data loader
"""
