from signoff.extraction.candidates import digits_only, find_candidates, within_tolerance


class TestWithinTolerance:
    def test_exact_length(self) -> None:
        assert within_tolerance("4521983", 7) is True

    def test_one_off_either_side(self) -> None:
        assert within_tolerance("452198", 7) is True
        assert within_tolerance("45219831", 7) is True

    def test_two_off_is_rejected(self) -> None:
        assert within_tolerance("45219", 7) is False

    def test_ignores_non_digits(self) -> None:
        assert within_tolerance("WO-452-1983", 7) is True

    def test_no_digits(self) -> None:
        assert within_tolerance("none", 1) is False


class TestDigitsOnly:
    def test_strips_prefix_and_punctuation(self) -> None:
        assert digits_only("WO #45-21983") == "4521983"


class TestFindCandidates:
    def test_empty_text(self) -> None:
        assert find_candidates("", 7) == []
        assert find_candidates("   \n", 7) == []

    def test_single_prefixed_number(self) -> None:
        result = find_candidates("Work Order WO 4521983", 7)

        assert [c.digits for c in result] == ["4521983"]
        assert result[0].prefixed is True
        assert result[0].line == "Work Order WO 4521983"

    def test_prefix_variants(self) -> None:
        for text in ("WO#4521983", "W/O: 4521983", "work order number 4521983", "wo - 4521983"):
            assert [c.digits for c in find_candidates(text, 7)] == ["4521983"], text

    def test_out_of_tolerance_numbers_are_dropped(self) -> None:
        assert find_candidates("invoice 881", 6) == []

    def test_dedupes_repeated_number(self) -> None:
        result = find_candidates("WO 4521983\nref 4521983", 7)

        assert len(result) == 1
        assert result[0].prefixed is True

    def test_exact_length_ranks_before_off_length(self) -> None:
        result = find_candidates("ref 452198 then 4521983", 7)

        assert [c.digits for c in result] == ["4521983", "452198"]

    def test_prefixed_ranks_before_plain(self) -> None:
        result = find_candidates("phone 5551234\nWO 4521983", 7)

        assert [c.digits for c in result] == ["4521983", "5551234"]

    def test_encounter_order_breaks_ties(self) -> None:
        result = find_candidates("1111111 2222222 3333333", 7)

        assert [c.digits for c in result] == ["1111111", "2222222", "3333333"]

    def test_hyphenated_runs_are_not_split(self) -> None:
        assert find_candidates("date 2024-01-15", 4) == []

    def test_snippet_line_is_capped(self) -> None:
        text = "x" * 150 + " 4521983"

        result = find_candidates(text, 7)

        assert len(result[0].line) == 100

    def test_matches_length(self) -> None:
        (candidate,) = find_candidates("WO 452198", 7)

        assert candidate.matches_length(7) is False
        assert candidate.matches_length(6) is True
