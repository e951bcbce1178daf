"""Tests for incremental event-stream parsing."""

import random

import pytest

from profile_enrichment.streaming.sse import SSEFrame, SSEParser, encode_frame

PHASE_DATA = (
    '{"phase":"profile","progress":33,"data":{"followers":1200,"bio":"x","profilePicture":null}}'
)
STREAM = (
    f"event: phase\ndata: {PHASE_DATA}\n\n"
    ": keepalive comment\n\n"
    'event: phase\ndata: {"phase":"metrics","progress":66,"data":{"postsAnalyzed":12}}\n\n'
    'event: error\ndata: {"phase":"ai","message":"Model timeout – retrying"}\n\n'
    "event: done\ndata: {}\n\n"
).encode()

EXPECTED = [
    SSEFrame("phase", PHASE_DATA),
    SSEFrame("phase", '{"phase":"metrics","progress":66,"data":{"postsAnalyzed":12}}'),
    SSEFrame("error", '{"phase":"ai","message":"Model timeout – retrying"}'),
    SSEFrame("done", "{}"),
]


def _parse_in_chunks(data: bytes, boundaries: list[int]) -> list[SSEFrame]:
    parser = SSEParser()
    frames: list[SSEFrame] = []
    start = 0
    for end in [*boundaries, len(data)]:
        frames.extend(parser.feed(data[start:end]))
        start = end
    return frames


def test_single_chunk_yields_all_frames() -> None:
    assert SSEParser().feed(STREAM) == EXPECTED


def test_byte_at_a_time_matches_single_chunk() -> None:
    assert _parse_in_chunks(STREAM, list(range(1, len(STREAM)))) == EXPECTED


@pytest.mark.parametrize("seed", range(20))
def test_random_chunk_boundaries_match_single_chunk(seed: int) -> None:
    rng = random.Random(seed)
    cuts = sorted(rng.sample(range(1, len(STREAM)), k=rng.randint(1, 25)))
    assert _parse_in_chunks(STREAM, cuts) == EXPECTED


def test_multibyte_character_split_across_chunks() -> None:
    # "–" is three bytes in UTF-8; split inside it
    index = STREAM.index("–".encode()) + 1
    frames = _parse_in_chunks(STREAM, [index])
    assert frames[2].data == '{"phase":"ai","message":"Model timeout – retrying"}'


def test_frame_split_between_event_and_data_lines() -> None:
    parser = SSEParser()
    assert parser.feed(b"event: phase\n") == []
    assert parser.feed(b"data: {}\n") == []
    assert parser.feed(b"\n") == [SSEFrame("phase", "{}")]


def test_partial_line_is_buffered() -> None:
    parser = SSEParser()
    assert parser.feed("event: do") == []
    assert parser.pending == "event: do"
    assert parser.feed("ne\ndata: {}\n\n") == [SSEFrame("done", "{}")]
    assert parser.pending == ""


def test_unrecognized_lines_are_ignored() -> None:
    parser = SSEParser()
    frames = parser.feed("id: 7\nretry: 1000\nevent: phase\nbogus line\ndata: {}\n\n")
    assert frames == [SSEFrame("phase", "{}")]


def test_blank_line_without_event_and_data_emits_nothing() -> None:
    parser = SSEParser()
    assert parser.feed("data: orphan\n\n") == []
    assert parser.feed("\n\n") == []


def test_crlf_line_endings() -> None:
    frames = SSEParser().feed(b"event: done\r\ndata: {}\r\n\r\n")
    assert frames == [SSEFrame("done", "{}")]


def test_values_are_stripped() -> None:
    frames = SSEParser().feed("event:   phase  \ndata:{\"a\": 1}  \n\n")
    assert frames == [SSEFrame("phase", '{"a": 1}')]


def test_encode_frame_round_trips_through_parser() -> None:
    frame = SSEFrame("phase", PHASE_DATA)
    encoded = encode_frame(frame)
    assert encoded == f"event: phase\ndata: {PHASE_DATA}\n\n".encode()
    assert SSEParser().feed(encoded) == [frame]
