"""
Pytest configuration and shared fixtures for the member roster tests.
"""
from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemberStore
from main import create_app
from photos import LocalPhotoStorage
from service import MemberService

NOW = datetime(2024, 6, 1, 10, 30)

# Smallest byte strings that pass the signature checks
JPEG_BYTES = b'\xff\xd8\xff\xe0' + b'\x00' * 64
PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64

MEMBER_FORM = {
    'name': 'Ravi Kumar',
    'address': '12 MG Road, Pune',
    'dob': '1990-05-20',
    'mobileNumber': '9876543210',
    'emergencyContactNumber': '9123456780',
    'membershipDuration': '3',
    'membershipStartDate': '2024-01-15',
    'paidFee': '3000',
    'pendingFee': '500',
    'workoutPlan': 'Push/Pull/Legs',
    'bodyWeight': '82.5',
    'bodyMeasurements': '{"chest": 90, "waist": 80}',
}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_name='gym_test',
        photo_dir=str(tmp_path / 'photos'),
        photo_url_prefix='/public',
        photo_max_bytes=1024,
    )


@pytest.fixture
def database():
    return mongomock.MongoClient()['gym_test']


@pytest.fixture
def store(database):
    return MemberStore(database)


@pytest.fixture
def photos(settings):
    storage = LocalPhotoStorage(settings.photo_dir, settings.photo_url_prefix, settings.photo_max_bytes)
    storage.ensure_directory()
    return storage


@pytest.fixture
def service(store, photos, settings):
    return MemberService(store, photos, settings, clock=lambda: NOW)


@pytest.fixture
def client(settings, database):
    """A test client bound to an in-memory store."""
    app = create_app(settings, database=database)
    with TestClient(app) as c:
        yield c
