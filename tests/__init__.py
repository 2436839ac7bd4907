"""WeakScan Test Suite

Test modules:
    test_scheduler   - admission, dedup, stop/cancel races, restart recovery
    test_executor    - nmap XML parsing, probe loop, http-brute recheck
    test_commands    - probe strategies and command formatting
    test_dictionary  - dictionary sync and list-file materialization
    test_targets     - scope expansion and address resolution
    test_notify      - scan-complete notification events
    test_process     - process-tree termination
    test_service     - exposed operations end to end (fake executor)
    test_dashboard   - HTTP API routes and basic auth
    test_config      - config.yaml loading and validation
    test_database    - sqlite repository and migrations (pytest tmp_path)
    test_layering    - Static import analysis enforcing architectural
                       layering rules (core / database / dashboard)

Shared test doubles live in tests/fakes.py.

Run all tests:
    pytest tests/ -v
"""
