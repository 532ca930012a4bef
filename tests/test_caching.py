"""Tests for Redis caching implementation."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from app.core.redis_client import CacheManager


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    result = cache_manager.get_json("test_key")
    assert result is None
    mock_redis.get.assert_called_once_with("test_key")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"doctor": "Dr. Smith", "time": "10:00"}'
    result = cache_manager.get_json("test_key")
    assert result == {"doctor": "Dr. Smith", "time": "10:00"}
    mock_redis.get.assert_called_once_with("test_key")


def test_cache_manager_get_json_survives_redis_errors():
    """A broken cache reads as a miss."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("test_key") is None


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    test_data = {"date": date(2030, 1, 15), "time": "10:00"}

    # Test without TTL
    result = cache_manager.set_json("test_key", test_data)
    assert result is True
    mock_redis.set.assert_called_once_with(
        "test_key", json.dumps({"date": "2030-01-15", "time": "10:00"})
    )

    # Test with TTL
    mock_redis.reset_mock()
    result = cache_manager.set_json("test_key", test_data, ttl=60)
    assert result is True
    mock_redis.setex.assert_called_once()
    assert mock_redis.setex.call_args.args[1] == 60


def test_cache_manager_delete():
    """Test CacheManager delete method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    result = cache_manager.delete("test_key")
    assert result is True
    mock_redis.delete.assert_called_once_with("test_key")


def test_cache_manager_delete_pattern():
    """Test CacheManager delete_pattern method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    mock_redis.keys.return_value = [
        "appointments:anon:2030-01-15:2030-01-15:all",
        "appointments:anon:2030-01-15:2030-01-21:all",
        "appointments:anon:2030-01-15:2030-01-15:Dr. Smith",
    ]
    mock_redis.delete.return_value = 3

    result = cache_manager.delete_pattern("appointments:anon:*")

    mock_redis.keys.assert_called_once_with("appointments:anon:*")
    assert result == 3

    # Nothing matched: nothing deleted
    mock_redis.reset_mock()
    mock_redis.keys.return_value = []
    assert cache_manager.delete_pattern("appointments:anon:*") == 0
    mock_redis.delete.assert_not_called()


@pytest.mark.asyncio
async def test_anonymized_list_is_cached(
    client: AsyncClient,
    patient_headers: dict,
    appointment_data: dict,
    future_date: date,
    mock_redis: MagicMock,
):
    """The anonymized occupancy view is stored with the configured TTL."""
    await client.post("/api/v1/appointments/", json=appointment_data, headers=patient_headers)

    response = await client.get(
        "/api/v1/appointments/",
        params={"anonymize": "true", "start_date": future_date.isoformat()},
        headers=patient_headers,
    )
    assert response.status_code == 200

    key = f"appointments:anon:{future_date.isoformat()}:{future_date.isoformat()}:all"
    cached_keys = [c.args[0] for c in mock_redis.setex.call_args_list]
    assert key in cached_keys


@pytest.mark.asyncio
async def test_anonymized_list_served_from_cache(
    client: AsyncClient,
    patient_headers: dict,
    future_date: date,
    mock_redis: MagicMock,
):
    """A cache hit skips the database entirely."""
    cached = {
        "total": 1,
        "items": [
            {
                "id": "00000000-0000-0000-0000-000000000001",
                "doctor": "Dr. Jones",
                "date": future_date.isoformat(),
                "time": "15:00",
                "duration": 60,
                "status": "scheduled",
                "payment_status": "paid",
            }
        ],
    }
    mock_redis.get.side_effect = lambda key: (
        json.dumps(cached) if key.startswith("appointments:anon:") else None
    )

    response = await client.get(
        "/api/v1/appointments/",
        params={"anonymize": "true", "start_date": future_date.isoformat()},
        headers=patient_headers,
    )
    assert response.status_code == 200
    assert response.json() == cached


@pytest.mark.asyncio
async def test_writes_invalidate_anonymized_cache(
    client: AsyncClient,
    patient_headers: dict,
    staff_headers: dict,
    appointment_data: dict,
    mock_redis: MagicMock,
):
    """Every booking write clears the anonymized views."""
    created = await client.post(
        "/api/v1/appointments/", json=appointment_data, headers=patient_headers
    )
    assert created.status_code == 201
    mock_redis.keys.assert_called_with("appointments:anon:*")

    mock_redis.keys.reset_mock()
    await client.post(
        f"/api/v1/appointments/{created.json()['id']}/approve",
        headers=staff_headers,
    )
    mock_redis.keys.assert_called_with("appointments:anon:*")


@pytest.mark.asyncio
async def test_rejected_booking_leaves_cache_alone(
    client: AsyncClient,
    patient_headers: dict,
    other_patient_headers: dict,
    appointment_data: dict,
    mock_redis: MagicMock,
):
    """Nothing is written on a conflict, so nothing is invalidated."""
    await client.post("/api/v1/appointments/", json=appointment_data, headers=patient_headers)

    mock_redis.keys.reset_mock()
    response = await client.post(
        "/api/v1/appointments/", json=appointment_data, headers=other_patient_headers
    )
    assert response.status_code == 409
    mock_redis.keys.assert_not_called()


@pytest.mark.asyncio
async def test_doctor_list_caching(
    client: AsyncClient,
    mock_redis: MagicMock,
):
    """The doctor roster is cached after the first read."""
    response = await client.get("/api/v1/doctors/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [doctor["name"] for doctor in data["doctors"]] == ["Dr. Jones", "Dr. Smith"]

    cached_calls = {c.args[0]: c.args[1] for c in mock_redis.setex.call_args_list}
    assert cached_calls["doctor:list:active"] == 300
