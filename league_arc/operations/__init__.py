"""
Operations Layer

This package provides business logic operations that compose database methods
for multi-step workflows with validation and business rules.

Architecture:
- Database layer: Pure data access plus fixture/result operations
- Operations layer: Business logic composition and workflows
- CLI layer: Admin commands in league_arc.main

Each operations module focuses on a specific domain:
- LeagueOperations: League lifecycle and participant enrollment
- FixtureOperations: Fixture generation and result recording (league_arc.database.fixture_operations)
"""
