"""
Test Suite for the Option Strategy Matcher

This package contains unit and integration tests for the matcher, organized
by module.

Test modules:
    - test_position: Position snapshots and validation
    - test_inventory: Per-underlying inventory construction
    - test_templates: Leg specifications, constraints and the catalog
    - test_leg_matcher: Binding single legs to positions
    - test_search: Strategy search engine scenarios and invariants
    - test_inspection: Assertion-style result inspection
    - test_margin: Margin model and margin bridge
    - test_position_book: Fill tracking and snapshots
    - test_cli: Configuration loading, environments and CLI commands
    - test_integration: End-to-end covered call flow
    - test_performance: Search timing on large books

Run all tests:
    pytest tests/ -v

Run with coverage:
    pytest tests/ --cov=strategy_matcher --cov-report=term-missing
"""
