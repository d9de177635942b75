import hashlib
from datetime import datetime, timedelta, timezone
from uuid import UUID

from skillswap.core.integrity import format_timestamp, hash_metadata, verify_metadata_hash

SENDER = UUID("11111111-1111-1111-1111-111111111111")
RECIPIENT = UUID("22222222-2222-2222-2222-222222222222")
PROJECT = UUID("33333333-3333-3333-3333-333333333333")


def test_format_timestamp_is_utc_with_milliseconds():
    moment = datetime(2024, 5, 1, 12, 15, 30, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(moment) == "2024-05-01T10:15:30.123Z"


def test_naive_timestamps_are_treated_as_utc():
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"


def test_hash_matches_compact_json_digest():
    expected_payload = (
        '{"sender":"11111111-1111-1111-1111-111111111111",'
        '"recipient":"22222222-2222-2222-2222-222222222222",'
        '"timestamp":"2024-05-01T10:15:30.123Z",'
        '"projectId":"33333333-3333-3333-3333-333333333333"}'
    )
    expected = hashlib.sha256(expected_payload.encode("utf-8")).hexdigest()

    assert hash_metadata(SENDER, RECIPIENT, "2024-05-01T10:15:30.123Z", PROJECT) == expected


def test_datetime_and_string_timestamps_agree():
    moment = datetime(2024, 5, 1, 10, 15, 30, 123000, tzinfo=timezone.utc)
    assert hash_metadata(SENDER, RECIPIENT, moment, PROJECT) == hash_metadata(
        str(SENDER), str(RECIPIENT), "2024-05-01T10:15:30.123Z", str(PROJECT)
    )


def test_verify_detects_swapped_parties():
    digest = hash_metadata(SENDER, RECIPIENT, "2024-05-01T10:15:30.123Z", PROJECT)
    assert verify_metadata_hash(digest, SENDER, RECIPIENT, "2024-05-01T10:15:30.123Z", PROJECT)
    assert not verify_metadata_hash(digest, RECIPIENT, SENDER, "2024-05-01T10:15:30.123Z", PROJECT)
