"""
Rankboard Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests on the in-memory backend and mocks
- tests/integration/   : Integration tests against Redis via testcontainers

Testing Philosophy
------------------
- Unit tests: fast, isolated, exercise ranking logic
- Integration tests: slower, exercise the Redis key layout and transactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
