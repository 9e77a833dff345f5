"""Tests for the side-channel tag codec."""

from tomanage.models.side_channel import encode_side_channel_tags, split_side_channel_tags


def test_split_separates_regular_tags():
    regular, values = split_side_channel_tags(["Work", " energy:HIGH ", "duration:30", ""])

    assert regular == ["Work"]
    assert values.energy_required == "high"
    assert values.estimated_duration == 30


def test_split_first_occurrence_wins():
    _, values = split_side_channel_tags(["energy:low", "energy:high", "duration:10", "duration:20"])

    assert values.energy_required == "low"
    assert values.estimated_duration == 10


def test_split_handles_none():
    regular, values = split_side_channel_tags(None)

    assert regular == []
    assert values.energy_required is None


def test_encode_appends_pseudo_tags():
    assert encode_side_channel_tags(["a"], energy_required="medium", estimated_duration=25) == [
        "a", "energy:medium", "duration:25",
    ]


def test_encode_without_values_keeps_tags():
    assert encode_side_channel_tags(["a", "b"]) == ["a", "b"]
