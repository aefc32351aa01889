import pathlib
import sys
import time
from datetime import date, datetime, timezone

import pytest
from PIL import Image, ImageDraw

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from eventhub.app import create_app, db
from eventhub.models import AttendanceEntry, CoreMember, Event, EventStudent, User
from eventhub.services.identity import build_scan_url
from eventhub.shared.time import local_day, to_storage

BASE_URL = "https://events.example.edu"
ORG_TZ = "Asia/Kolkata"


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


@pytest.fixture
def host_tz():
    """Switch the process zone with ``host_tz("America/New_York")``."""
    if not hasattr(time, "tzset"):
        pytest.skip("host zone cannot be switched on this platform")
    with pytest.MonkeyPatch.context() as mp:

        def use(name):
            mp.setenv("TZ", name)
            time.tzset()

        yield use
    time.tzset()


@pytest.fixture
def template_path(tmp_path):
    path = tmp_path / "certificate-template.png"
    image = Image.new("RGB", (600, 400), (250, 250, 245))
    draw = ImageDraw.Draw(image)
    draw.rectangle((10, 10, 589, 389), outline=(30, 41, 59), width=4)
    image.save(path, format="PNG")
    return str(path)


@pytest.fixture
def app(template_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    application = create_app(
        {
            "TESTING": True,
            "APP_BASE_URL": BASE_URL,
            "ATTENDANCE_TIMEZONE": ORG_TZ,
            "ELIGIBILITY_TIMEZONE": ORG_TZ,
            "CERT_TEMPLATE_PATH": template_path,
        }
    )
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    user = User(email="admin@example.com", full_name="Admin", is_admin=True)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def volunteer(app):
    user = User(email="volunteer@example.com", full_name="Volunteer", is_admin=False)
    db.session.add(user)
    db.session.commit()
    return user


def login(client, user) -> None:
    with client.session_transaction() as sess:
        sess.clear()
        sess["user_id"] = user.id


def make_event(name="Startup School", day=date(2026, 3, 5), motive="Build and ship"):
    event = Event(event_name=name, event_date=day, motive=motive)
    db.session.add(event)
    db.session.commit()
    return event


def make_student(token, *, event=None, event_name=None, name=None, email=None, roll=None):
    student = EventStudent(
        name=name or f"Student {token}",
        email=email or f"{token}@students.example.edu",
        roll_number=roll or f"R-{token}",
        event_name=event_name or (event.event_name if event else None),
        event_id=event.id if event else None,
        scan_identity=build_scan_url(token, BASE_URL),
    )
    db.session.add(student)
    db.session.commit()
    return student


def make_core_member(token, *, name=None, email=None, roll=None):
    member = CoreMember(
        name=name or f"Member {token}",
        email=email or f"{token}@core.example.edu",
        roll_number=roll or f"C-{token}",
        scan_identity=build_scan_url(token, BASE_URL),
    )
    db.session.add(member)
    db.session.commit()
    return member


def add_attendance(registrant, instant: datetime, tz_name: str = ORG_TZ):
    entry = AttendanceEntry(
        registrant_id=registrant.id,
        recorded_at=to_storage(instant),
        present=True,
        day_key=local_day(instant, tz_name),
        day_zone=tz_name,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
