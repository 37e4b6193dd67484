"""Repository adapters - Database implementations."""

from .memory import InMemoryVerificationRepository
from .postgres import PostgresVerificationRepository, run_migrations

__all__ = ["InMemoryVerificationRepository", "PostgresVerificationRepository", "run_migrations"]
