"""
Results aggregation and CSV export.
"""

from datetime import datetime, timedelta, timezone

from jury.utils.export import export_filename, results_to_csv
from jury.utils.results import (
    count_option_votes,
    open_ended_results,
    percentage,
    question_results,
    ranked_results,
    rating_results,
    summarize_totals,
)

OPTIONS = [
    {"id": "o1", "text": "Red", "option_order": 1, "question_id": "q1"},
    {"id": "o2", "text": "Blue", "option_order": 2, "question_id": "q1"},
    {"id": "o3", "text": "Green", "option_order": 3, "question_id": "q1"},
]


class TestOptionCounts:

    def test_every_option_starts_at_zero(self):
        results = count_option_votes(OPTIONS, [])
        assert [r["vote_count"] for r in results] == [0, 0, 0]
        assert [r["option_text"] for r in results] == ["Red", "Blue", "Green"]

    def test_counts_lists_and_json_strings(self):
        votes = [
            {"options": ["o1"]},
            {"options": '["o1", "o2"]'},
            {"options": ["o3", "deleted-option"]},
            {"options": "not json"},
            {"options": None},
        ]
        results = {r["option_id"]: r["vote_count"] for r in count_option_votes(OPTIONS, votes)}
        assert results == {"o1": 2, "o2": 1, "o3": 1}

    def test_custom_votes_key(self):
        votes = [{"selected_options": ["o2"]}, {"selected_options": ["o2"]}]
        results = count_option_votes(OPTIONS, votes, votes_key="selected_options")
        assert results[1]["vote_count"] == 2


class TestQuestionTypes:

    def test_rating(self):
        question = {"id": "q2", "settings": {"min": 1, "max": 5}}
        votes = [
            {"responses": {"q2": 5}},
            {"responses": {"q2": 4}},
            {"responses": {"q2": 9}},
            {"responses": {"q2": True}},
            {"responses": {}},
        ]
        result = rating_results(question, votes)
        assert result["average"] == 4.5
        assert result["total_ratings"] == 2
        assert result["distribution"] == {1: 0, 2: 0, 3: 0, 4: 1, 5: 1}

    def test_rating_with_no_votes(self):
        result = rating_results({"id": "q2", "settings": {}}, [])
        assert result["average"] == 0
        assert (result["min"], result["max"]) == (1, 5)

    def test_ranked_sorts_best_first_and_unranked_last(self):
        question = {"id": "q1"}
        votes = [
            {"responses": {"q1": ["o2", "o1"]}},
            {"responses": {"q1": ["o2", "o1"]}},
            {"responses": {"q1": ["o1", "o2"]}},
        ]
        results = ranked_results(OPTIONS, question, votes)
        assert [r["option_id"] for r in results] == ["o2", "o1", "o3"]
        assert results[0]["avg_position"] == 1.33
        assert results[0]["first_place_count"] == 2
        assert results[2]["avg_position"] is None
        assert results[2]["times_ranked"] == 0

    def test_open_ended_skips_blank(self):
        votes = [{"responses": {"q9": " Great talk "}}, {"responses": {"q9": "   "}}, {"responses": {"q9": 3}}]
        assert open_ended_results({"id": "q9"}, votes) == {"responses": ["Great talk"], "total_responses": 1}

    def test_question_results_dispatch(self):
        choice = question_results({"id": "q1", "question_type": "multiple_choice"}, OPTIONS, [{"options": ["o3"]}])
        assert choice["options"][2]["vote_count"] == 1

        rating = question_results({"id": "q2", "question_type": "rating_scale", "settings": {}}, OPTIONS, [])
        assert "rating" in rating and "options" not in rating


class TestTotals:

    def test_percentage(self):
        assert percentage(1, 3) == 33.3
        assert percentage(2, 3) == 66.7
        assert percentage(5, 0) == 0.0

    def test_summarize(self):
        results = count_option_votes(OPTIONS, [{"options": ["o2"]}, {"options": ["o2", "o1"]}])
        summary = summarize_totals(results, total_voters=2)
        assert summary == {"total_votes": 3, "total_voters": 2, "leading_option_id": "o2"}

    def test_summarize_without_votes(self):
        assert summarize_totals(count_option_votes(OPTIONS, []), 0)["leading_option_id"] is None


class TestCsvExport:

    EXPORTED = datetime(2026, 2, 3, 4, 5, 6, tzinfo=timezone.utc)

    def test_filename(self):
        assert export_filename("AbC12345", self.EXPORTED) == "poll-results-AbC12345-2026-02-03.csv"

    def test_layout(self):
        results = [
            {"option_text": "Red", "vote_count": 2},
            {"option_text": "Blue", "vote_count": 1},
        ]
        body = results_to_csv({"question": "Colour?", "code": "AbC12345"}, results, 3, self.EXPORTED)
        lines = body.split("\n")

        assert lines[0] == "# Poll: Colour? | Code: AbC12345 | Total Voters: 3 | Exported: 2026-02-03T04:05:06.000Z"
        assert lines[1] == "Option,Votes,Percentage"
        assert lines[2] == "Red,2,66.7%"
        assert lines[3] == "Blue,1,33.3%"
        assert lines[4] == "Total,3,"
        assert body.endswith("\n")

    def test_escaping(self):
        results = [{"option_text": 'Say "hi", then leave', "vote_count": 0}]
        body = results_to_csv({"question": "Q", "code": "X"}, results, 0, self.EXPORTED)
        assert '"Say ""hi"", then leave",0,0.0%' in body.split("\n")

    def test_comment_row_escapes_only_the_question(self):
        body = results_to_csv({"question": "Cats, or dogs?", "code": "X"}, [], 0, self.EXPORTED)
        first = body.split("\n")[0]
        assert first == '# Poll: "Cats, or dogs?" | Code: X | Total Voters: 0 | Exported: 2026-02-03T04:05:06.000Z'

        quoted = results_to_csv({"question": 'The "best" pet', "code": "X"}, [], 0, self.EXPORTED)
        assert quoted.startswith('# Poll: "The ""best"" pet" | Code: X')

    def test_exported_timestamp_is_utc_milliseconds(self):
        exported = datetime(2026, 2, 3, 4, 5, 6, 789123, tzinfo=timezone(timedelta(hours=2)))
        body = results_to_csv({"question": "Q", "code": "X"}, [], 0, exported)
        assert body.split("\n")[0].endswith("Exported: 2026-02-03T02:05:06.789Z")
