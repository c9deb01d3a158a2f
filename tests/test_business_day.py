from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ValidationError
from app.services.business_day import business_day_bounds, parse_day_key, resolve_business_day, to_local

LIMA = timezone(timedelta(hours=-5))


def test_midnight_boundary_lima():
    last = datetime(2025, 3, 10, 23, 59, 59, 999000, tzinfo=LIMA)
    first = datetime(2025, 3, 11, 0, 0, 0, tzinfo=LIMA)
    assert resolve_business_day(last) == "2025-03-10"
    assert resolve_business_day(first) == "2025-03-11"


def test_utc_instant_maps_to_lima_day():
    # 03:00 UTC del 11 = 22:00 del 10 en Lima
    assert resolve_business_day(datetime(2025, 3, 11, 3, 0, tzinfo=timezone.utc)) == "2025-03-10"
    assert resolve_business_day(datetime(2025, 3, 11, 5, 0, tzinfo=timezone.utc)) == "2025-03-11"


def test_naive_instant_rejected():
    with pytest.raises(ValidationError):
        resolve_business_day(datetime(2025, 3, 10, 12, 0))


def test_non_datetime_rejected():
    with pytest.raises(ValidationError):
        resolve_business_day("2025-03-10T12:00:00")


def test_other_timezone():
    instant = datetime(2025, 3, 10, 23, 30, tzinfo=timezone.utc)
    assert resolve_business_day(instant, tz="UTC") == "2025-03-10"
    assert resolve_business_day(instant, tz="Asia/Tokyo") == "2025-03-11"


def test_unknown_timezone():
    with pytest.raises(ValidationError):
        resolve_business_day(datetime.now(timezone.utc), tz="Mars/Olympus")


def test_bounds_and_parse():
    start, end = business_day_bounds("2025-03-10")
    assert start.utcoffset() == timedelta(hours=-5)
    assert end - start == timedelta(days=1)
    assert resolve_business_day(start) == "2025-03-10"
    assert resolve_business_day(end - timedelta(microseconds=1)) == "2025-03-10"
    with pytest.raises(ValidationError):
        parse_day_key("10/03/2025")


def test_to_local_treats_naive_as_utc():
    local = to_local(datetime(2025, 3, 11, 3, 0))
    assert local.hour == 22 and local.day == 10
