"""Shared fixtures: in-memory database, API client, users and listings."""

import os

os.environ.update({
    "DB_HOST": "localhost",
    "DB_PORT": "5432",
    "DB_NAME": "locl_test",
    "DB_USER": "locl",
    "DB_PASSWORD": "locl",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "SECRET_KEY": "test-secret-key",
    "ALGORITHM": "HS256",
    "ACCESS_TOKEN_EXPIRE_MINUTES": "30",
    "REFRESH_TOKEN_EXPIRE_DAYS": "7",
    "APP_NAME": "Locl API",
    "DEBUG": "false",
    "ALLOWED_ORIGINS": "http://localhost:8081",
    "AWS_ACCESS_KEY_ID": "test-key",
    "AWS_SECRET_ACCESS_KEY": "test-secret",
    "S3_BUCKET_NAME": "locl-test",
    "S3_BASE_URL": "https://locl-test.s3.amazonaws.com",
    "MAX_UPLOAD_SIZE": "1048576",
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "%(asctime)s %(levelname)s %(name)s %(message)s",
    "LOG_TO_FILE": "false",
    "LOG_FILE_PATH": "logs/test.log",
    "LOG_MAX_SIZE_MB": "1",
    "LOG_BACKUP_COUNT": "1",
    "LOG_TO_CONSOLE": "false",
})

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from locl_api.auth.jwt_handler import create_access_token  # noqa: E402
from locl_api.auth.security import hash_password  # noqa: E402
from locl_api.database import SessionLocal, engine  # noqa: E402
from locl_api.enums.listing import ListingStatus  # noqa: E402
from locl_api.main import app  # noqa: E402
from locl_api.models.base import Base  # noqa: E402
from locl_api.models.listing import Listing  # noqa: E402
from locl_api.models.user import User  # noqa: E402
from locl_api.routes.users import get_location_service  # noqa: E402
from locl_api.services.location import LocationService, NominatimGeocoder  # noqa: E402
from locl_api.utils.retry import RetryPolicy, fixed_backoff  # noqa: E402
from locl_api.utils.s3_client import S3Client  # noqa: E402
from locl_api.utils.storage import get_file_storage, get_optional_file_storage  # noqa: E402

PASSWORD = "correct-horse-battery"

# Mountain View and a point about 2 km north of it
ORIGIN = {"latitude": 37.3861, "longitude": -122.0839, "city": "Mountain View"}
NEAR = {"latitude": 37.4041, "longitude": -122.0839, "city": "Mountain View"}
FAR = {"latitude": 37.7749, "longitude": -122.4194, "city": "San Francisco"}


class FakeS3:
    """Stands in for the boto3 client; fails the first `failures` put_object calls"""

    def __init__(self, failures=0, error=None):
        self.failures = failures
        self.error = error or ConnectionError("connection reset")
        self.calls = 0
        self.objects = {}
        self.deleted = []

    def put_object(self, Bucket, Key, Body, ContentType, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        self.objects[Key] = (Body, ContentType)
        return {"ETag": "etag"}

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        return {}


def no_sleep_policy(max_attempts=3):
    sleeps = []
    return RetryPolicy(max_attempts=max_attempts, backoff=fixed_backoff(1.0), sleep=sleeps.append), sleeps


def nominatim_reply(request):
    return httpx.Response(200, json={
        "display_name": "Castro Street, Mountain View, California, United States",
        "address": {
            "road": "Castro Street",
            "city": "Mountain View",
            "state": "California",
            "postcode": "94041",
            "country": "United States",
        },
    })


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def storage(fake_s3):
    policy, _ = no_sleep_policy()
    return S3Client(client=fake_s3, retry_policy=policy)


@pytest.fixture
def location_service():
    geocoder = NominatimGeocoder(transport=httpx.MockTransport(nominatim_reply))
    return LocationService(geocoder=geocoder)


@pytest.fixture
def client(storage, location_service):
    app.dependency_overrides[get_file_storage] = lambda: storage
    app.dependency_overrides[get_optional_file_storage] = lambda: storage
    app.dependency_overrides[get_location_service] = lambda: location_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, email, full_name=None, location=None, is_seller=False):
    user = User(
        email=email,
        hashed_password=hash_password(PASSWORD),
        full_name=full_name,
        location=location,
        is_seller=is_seller,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_listing(db, seller, title="Bike", price=100.0, location=None, status=ListingStatus.ACTIVE, images=None):
    listing = Listing(
        title=title,
        description=f"A used {title.lower()}",
        price=price,
        category="misc",
        images=images or [],
        seller_id=seller.id,
        status=status,
        location=location,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def seller(db):
    return make_user(db, "seller@example.com", "Sam Seller", location=ORIGIN, is_seller=True)


@pytest.fixture
def buyer(db):
    return make_user(db, "buyer@example.com", "Bea Buyer", location=ORIGIN)


@pytest.fixture
def listing(db, seller):
    return make_listing(db, seller, location=NEAR, images=["https://cdn.example.com/bike.jpg"])
