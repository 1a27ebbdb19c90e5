"""
openQA Access Layer - Test Suite Package.

Pytest-based unit tests, one module per component:
- test_transport: request signing and serialization.
- test_resolver / test_instance: REST resolution and endpoints.
- test_normalizer / test_session: message bus decoding and subscriptions.
- test_config: configuration loading and validation.
"""
