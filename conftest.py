"""Shared pytest fixtures for touchpath packages."""

import pytest


@pytest.fixture
def worked_summary_records():
    """Summary around the baseline B > C > A with all three counterfactuals observed."""
    return [
        {"path": "B > C > A", "total_paths": 11, "converting_paths": 1, "conversion_prob": 0.0909},
        {"path": "B > C", "total_paths": 1000, "converting_paths": 73, "conversion_prob": 0.0730},
        {"path": "C > A", "total_paths": 10000, "converting_paths": 692, "conversion_prob": 0.0692},
        {"path": "B > A", "total_paths": 10000, "converting_paths": 805, "conversion_prob": 0.0805},
    ]


@pytest.fixture
def sample_customer_records():
    """Customer-level paths with revenue for testing."""
    return [
        {"customer_id": "CUST-001", "path": "Search > Email", "converted": True, "revenue": 100.0},
        {"customer_id": "CUST-002", "path": "Search > Email", "converted": False, "revenue": 0.0},
        {"customer_id": "CUST-003", "path": "Email", "converted": True, "revenue": 50.0},
        {"customer_id": "CUST-004", "path": "Search", "converted": False, "revenue": 0.0},
        {"customer_id": "CUST-005", "path": "Display", "converted": True, "revenue": 30.0},
    ]


@pytest.fixture
def sample_touch_records():
    """Event-level touch log for testing recency bucketing."""
    return [
        {
            "customer_id": "CUST-001",
            "channel": "Search",
            "timestamp": "2025-01-01T10:00:00Z",
            "conversion_timestamp": "2025-01-04T10:00:00Z",
            "revenue": 50.0,
        },
        {
            "customer_id": "CUST-001",
            "channel": "Email",
            "timestamp": "2025-01-03T10:00:00Z",
            "conversion_timestamp": "2025-01-04T10:00:00Z",
            "revenue": 50.0,
        },
        {
            "customer_id": "CUST-001",
            "channel": "Display",
            "timestamp": "2025-01-05T10:00:00Z",
            "conversion_timestamp": "2025-01-04T10:00:00Z",
            "revenue": 50.0,
        },
        {
            "customer_id": "CUST-002",
            "channel": "Display",
            "timestamp": "2025-01-01T10:00:00Z",
            "conversion_timestamp": None,
            "revenue": None,
        },
        {
            "customer_id": "CUST-002",
            "channel": "Display",
            "timestamp": "2025-01-02T10:00:00Z",
            "conversion_timestamp": None,
            "revenue": None,
        },
    ]
