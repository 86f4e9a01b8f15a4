"""Message decoding and newest-first ranking."""

from __future__ import annotations

import pytest

from errors import ParseError
from messages import Message, rank_messages


def test_rank_orders_newest_first_across_encodings() -> None:
    seconds = Message(subject="seconds", create_time=1_700_000_100)
    millis = Message(subject="millis", create_time=1_700_000_200_000)
    iso = Message(subject="iso", create_time="2023-11-14T22:13:20Z")  # 1_700_000_000 s

    ranked = rank_messages([iso, seconds, millis])

    assert [m.subject for m in ranked] == ["millis", "seconds", "iso"]


def test_rank_is_stable_for_equal_timestamps() -> None:
    first = Message(subject="first", create_time=1_700_000_000)
    second = Message(subject="second", create_time=1_700_000_000_000)
    third = Message(subject="third", create_time="2023-11-14 22:13:20")

    ranked = rank_messages([first, second, third], "UTC")

    assert [m.subject for m in ranked] == ["first", "second", "third"]


def test_rank_does_not_mutate_input() -> None:
    messages = [
        Message(subject="old", create_time=100),
        Message(subject="new", create_time=200),
    ]
    original = list(messages)

    ranked = rank_messages(messages)

    assert messages == original
    assert ranked is not messages
    assert [m.subject for m in ranked] == ["new", "old"]


def test_rank_puts_unparsable_timestamps_last_in_input_order() -> None:
    messages = [
        Message(subject="broken-1", create_time="soon"),
        Message(subject="dated", create_time=100),
        Message(subject="broken-2", create_time=None),
    ]

    ranked = rank_messages(messages)

    assert [m.subject for m in ranked] == ["dated", "broken-1", "broken-2"]


def test_rank_uses_configured_timezone_for_naive_strings() -> None:
    naive = Message(subject="naive", create_time="2024-01-01 10:00:00")
    aware = Message(subject="aware", create_time="2024-01-01T05:00:00Z")

    assert [m.subject for m in rank_messages([naive, aware], "UTC")] == ["naive", "aware"]
    assert [m.subject for m in rank_messages([naive, aware], "UTC+08:00")] == ["aware", "naive"]


def test_from_payload_maps_provider_fields() -> None:
    message = Message.from_payload(
        {
            "subject": "Your code is 123456",
            "createTime": "2024-01-01 10:00:00",
            "name": "OpenAI",
            "sendEmail": "noreply@tm.openai.com",
            "emailId": 77,
        }
    )

    assert message == Message(
        subject="Your code is 123456",
        create_time="2024-01-01 10:00:00",
        name="OpenAI",
        send_email="noreply@tm.openai.com",
    )
    assert message.sender == "OpenAI"


def test_from_payload_falls_back_to_address_and_empty_subject() -> None:
    message = Message.from_payload({"subject": None, "createTime": 1, "sendEmail": "a@b.c"})

    assert message.subject == ""
    assert message.sender == "a@b.c"


def test_from_payload_rejects_non_objects() -> None:
    with pytest.raises(ParseError):
        Message.from_payload(["not", "a", "message"])


def test_messages_are_immutable() -> None:
    message = Message(subject="s", create_time=1)

    with pytest.raises(AttributeError):
        message.subject = "changed"
