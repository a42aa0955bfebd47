"""Tests for lookalike identifier detection."""

import pytest

from src.domains.fraud.models import Contact, TrustStatus
from src.domains.fraud.similarity import (
    confusable_skeleton,
    find_similar_contacts,
    is_handle_near_miss,
    is_similar,
    levenshtein,
)


class TestLevenshtein:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("", "", 0),
            ("abc", "", 3),
            ("kitten", "sitting", 3),
            ("rahul", "rahul", 0),
            ("rahul", "rahui", 1),
        ],
    )
    def test_distances(self, a, b, expected):
        assert levenshtein(a, b) == expected
        assert levenshtein(b, a) == expected


class TestIsSimilar:
    def test_identical_is_not_similar(self):
        assert not is_similar("rahul.sharma@okaxis", "rahul.sharma@okaxis")

    def test_one_edit_on_same_handle(self):
        assert is_similar("rahul.sharrna@okaxis", "rahul.sharma@okaxis")
        assert is_similar("rahul.shamra@okaxis", "rahul.sharma@okaxis")

    def test_digit_substitution_matches_skeleton(self):
        assert confusable_skeleton("rahu1") == "rahul"
        assert is_similar("rahu1@okaxis", "rahul@okaxis")

    def test_different_handle_not_similar_by_distance(self):
        assert not is_similar("rahul.sharmaa@ybl", "rahul.sharma@okaxis")

    def test_transposition_on_same_handle(self):
        assert is_similar("jhon@ybl", "john@ybl")
        assert is_similar("priya@ybl", "pirya@ybl")

    def test_two_edits_on_short_local_part(self):
        assert is_similar("abc@ybl", "xyc@ybl")

    def test_two_letter_local_parts_never_match_by_distance(self):
        assert not is_similar("ab@ybl", "xy@ybl")
        assert not is_similar("ab@ybl", "ac@ybl")

    def test_three_edits_not_similar(self):
        assert not is_similar("john@ybl", "jane@ybl")

    def test_unrelated_names(self):
        assert not is_similar("priya@okaxis", "rahul@okaxis")


class TestFindSimilarContacts:
    def test_flagged_contacts_excluded(self):
        contacts = [
            Contact(owner_user_id="u", identifier="rahul@okaxis", trust_status=TrustStatus.FLAGGED),
            Contact(owner_user_id="u", identifier="rahu1@okaxis", trust_status=TrustStatus.TRUSTED),
        ]
        similar = find_similar_contacts("rahui@okaxis", contacts)
        assert [c.identifier for c in similar] == ["rahu1@okaxis"]

    def test_exact_contact_is_not_returned(self):
        contacts = [Contact(owner_user_id="u", identifier="rahul@okaxis")]
        assert find_similar_contacts("rahul@okaxis", contacts) == []


class TestHandleNearMiss:
    def test_known_handle_is_not_a_near_miss(self):
        assert not is_handle_near_miss("okaxis", ("okaxis", "ybl"))

    def test_one_edit_from_known_handle(self):
        assert is_handle_near_miss("okaxls", ("okaxis", "ybl"))
        assert is_handle_near_miss("ybi", ("okaxis", "ybl"))

    def test_unrelated_handle(self):
        assert not is_handle_near_miss("mybank", ("okaxis", "ybl"))
