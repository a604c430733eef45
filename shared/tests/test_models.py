"""
Tests for data models.
"""

import json
import pytest
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import ValidationError as PydanticValidationError
from shared.models import Job, Video


def _now():
    return datetime.now(timezone.utc)


def _job(**overrides):
    data = {
        "id": uuid4(),
        "user_id": "user-1",
        "prompt": "a cat surfing",
        "orientation": "landscape",
        "created_at": _now(),
        "updated_at": _now(),
    }
    data.update(overrides)
    return Job(**data)


def _video(**overrides):
    data = {
        "id": uuid4(),
        "user_id": "user-1",
        "prompt": "a cat surfing",
        "orientation": "landscape",
        "model_used": "sora_video2-hd-landscape-15s",
        "video_url": "https://cdn.example/v1.mp4",
        "created_at": _now(),
        "updated_at": _now(),
    }
    data.update(overrides)
    return Video(**data)


def test_job_model_defaults():
    """Test Job model validation."""
    job = _job()

    assert job.status == "pending"
    assert job.progress == 0
    assert job.video_id is None
    assert job.completed_at is None
    assert job.is_terminal is False


def test_job_model_progress_validation():
    """Test Job model progress validation."""
    assert _job(status="processing", progress=50).progress == 50

    with pytest.raises(PydanticValidationError):
        _job(status="processing", progress=150)
    with pytest.raises(PydanticValidationError):
        _job(status="processing", progress=-1)


def test_job_model_rejects_unknown_status_and_orientation():
    with pytest.raises(PydanticValidationError):
        _job(status="queued")
    with pytest.raises(PydanticValidationError):
        _job(orientation="square")


def test_job_terminal_states():
    assert _job(status="completed", completed_at=_now()).is_terminal
    assert _job(status="failed", completed_at=_now()).is_terminal
    assert not _job(status="processing").is_terminal


def test_job_parses_database_row():
    """Rows come back from PostgREST with string ids and ISO timestamps."""
    row = {
        "id": str(uuid4()),
        "user_id": "user-1",
        "prompt": "a cat surfing",
        "orientation": "portrait",
        "status": "processing",
        "progress": 45,
        "lease_owner": "host:1:abc",
        "lease_expires_at": "2024-05-01T12:05:00+00:00",
        "created_at": "2024-05-01T12:00:00+00:00",
        "updated_at": "2024-05-01T12:00:30+00:00",
    }

    job = Job.model_validate(row)

    assert job.progress == 45
    assert job.lease_expires_at.tzinfo is not None


def test_job_serializes_to_json():
    video_id = uuid4()
    job = _job(status="completed", progress=100, video_id=video_id, completed_at=_now())

    data = json.loads(job.model_dump_json())

    assert data["id"] == str(job.id)
    assert data["video_id"] == str(video_id)
    assert data["completed_at"] == job.completed_at.isoformat()


def test_video_model_requires_absolute_url():
    assert _video().video_url == "https://cdn.example/v1.mp4"

    for bad_url in ("not a url", "/relative/v1.mp4", "ftp://cdn.example/v1.mp4", "https://"):
        with pytest.raises(PydanticValidationError):
            _video(video_url=bad_url)


def test_video_model_validates_thumbnail_url():
    assert _video(thumbnail_url=None).thumbnail_url is None
    with pytest.raises(PydanticValidationError):
        _video(thumbnail_url="thumb.jpg")


def test_video_model_defaults():
    video = _video()

    assert video.status == "completed"
    assert video.metadata is None
    assert json.loads(video.model_dump_json())["id"] == str(video.id)
