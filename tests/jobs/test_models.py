"""Tests for experiment status ordering."""

import pytest

from mlwizard.jobs.models import ExperimentFile, ExperimentStatus, advance_status


@pytest.mark.parametrize(
    "value,expected",
    [
        ("success", ExperimentStatus.SUCCESS),
        (" Completed ", ExperimentStatus.COMPLETED),
        ("RUNNING", ExperimentStatus.RUNNING),
        ("queued", None),
        (None, None),
        (3, None),
    ],
)
def test_parse(value, expected):
    assert ExperimentStatus.parse(value) is expected


def test_terminal_and_success():
    assert ExperimentStatus.FAILED.is_terminal
    assert not ExperimentStatus.FAILED.is_success
    assert ExperimentStatus.COMPLETED.is_success
    assert not ExperimentStatus.RUNNING.is_terminal


def test_advance_status_is_forward_only():
    s = ExperimentStatus
    assert advance_status(None, s.SUBMITTED) is s.SUBMITTED
    assert advance_status(s.SUBMITTED, s.RUNNING) is s.RUNNING
    assert advance_status(s.RUNNING, s.PROCESSING) is s.PROCESSING
    assert advance_status(s.RUNNING, s.SUBMITTED) is s.RUNNING
    assert advance_status(s.RUNNING, None) is s.RUNNING
    assert advance_status(s.SUCCESS, s.RUNNING) is s.SUCCESS
    assert advance_status(s.FAILED, s.SUCCESS) is s.FAILED


def test_experiment_file():
    item = ExperimentFile.from_dict(
        {"file_type": "confusion_matrix", "file_url": "https://files/cm.PNG"}
    )
    assert item.is_image
    assert item.file_id is None
    assert not ExperimentFile(None, "model", "https://files/model.pkl").is_image
