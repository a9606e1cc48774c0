"""Domain Types — seat value codec and ClassListing sequence behaviour."""

import pytest

from scheduling.core.domain_types import (
    ClassListing,
    EnrollmentState,
    decode_seats,
    encode_seats,
)
from scheduling.core.errors import MalformedValueError


def test_seats_are_ascii_decimal():
    assert encode_seats(100) == b"100"
    assert decode_seats(b"100") == 100
    assert decode_seats(encode_seats(0)) == 0


@pytest.mark.parametrize("bad", [
    b"", b"abc", b"-1", b"\xff", b"5_0", b" 5", b"+5", b"5\n", b"05", b"\xd9\xa3",
])
def test_bad_seat_values_are_malformed(bad):
    with pytest.raises(MalformedValueError):
        decode_seats(bad)


def test_class_listing_is_restartable_sequence():
    listing = ClassListing(["a", "b", "c"])
    assert list(listing) == ["a", "b", "c"]
    assert list(listing) == ["a", "b", "c"]
    assert len(listing) == 3
    assert listing[1] == "b"
    assert "c" in listing
    assert listing == ["a", "b", "c"]
    assert listing == ClassListing(("a", "b", "c"))


def test_enrollment_state_has_two_states():
    assert set(EnrollmentState) == {
        EnrollmentState.NOT_ENROLLED,
        EnrollmentState.ENROLLED,
    }
