"""Tests for raw grading-response normalization."""

import pytest

from exam_results.errors import MalformedResponseError, UnresolvableCopyError
from exam_results.normalizer import OCR_PLACEHOLDER, normalize_response, resolve_submission
from exam_results.schemas import ScoringConfiguration, Submission


@pytest.fixture
def submissions():
    names = ["alice.pdf", "bob.pdf", "essay_jane.pdf", "dan.pdf", "eve.pdf"]
    return [
        Submission(id=f"s{i + 1}", display_name=name, storage_location=f"https://files.test/{name}")
        for i, name in enumerate(names)
    ]


@pytest.fixture
def config():
    return ScoringConfiguration(max_points_total=20)


def live_entry(*points, **extra):
    entry = {"questions": [{"num": i + 1, "point": p, "max_points": 5} for i, p in enumerate(points)]}
    entry.update(extra)
    return entry


class TestResolution:
    def test_positional_index_from_key(self, submissions, config):
        raw = {"resultat": {"copie_3": {"questions": [{"num": 1, "point": 2}]}}}
        result = normalize_response(raw, submissions, config)

        assert len(result.copies) == 1
        copy = result.copies[0]
        assert copy.student_label == "essay_jane.pdf"
        assert copy.id == "s3"
        assert copy.submission == submissions[2]

    def test_positional_index_wins_over_embedded_name(self, submissions, config):
        raw = {"resultat": {"copie_1": live_entry(3, nom_fichier="bob.pdf")}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.student_label == "alice.pdf"

    def test_falls_back_to_embedded_file_name(self, submissions, config):
        raw = {"resultat": {"copie_9": live_entry(3, nom_fichier="bob.pdf")}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.student_label == "bob.pdf"
        assert copy.id == "s2"

    def test_unmatched_embedded_name_is_used_as_label(self, config):
        raw = {"resultat": {"copie_1": live_entry(3, nom_fichier="zed.pdf")}}
        copy = normalize_response(raw, [], config).copies[0]
        assert copy.student_label == "zed.pdf"
        assert copy.submission is None
        assert copy.id == "copie_1"

    def test_falls_back_to_raw_key(self, submissions, config):
        raw = {"resultat": {"copie_9": live_entry(3)}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.student_label == "copie_9"
        assert copy.id == "copie_9"

    def test_key_without_number_uses_mapping_position(self, submissions, config):
        raw = {"resultat": {"first": live_entry(1), "second": live_entry(2)}}
        copies = normalize_response(raw, submissions, config).copies
        assert [c.student_label for c in copies] == ["alice.pdf", "bob.pdf"]

    def test_db_id_takes_precedence_for_copy_id(self, submissions, config):
        raw = {"resultat": {"copie_2": live_entry(1, db_id=42)}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.id == "42"
        assert copy.student_label == "bob.pdf"

    def test_resolve_submission_out_of_range(self, submissions):
        assert resolve_submission("copie_0", 0, None, submissions) is None
        assert resolve_submission("copie_6", 0, "eve.pdf", submissions) == submissions[4]


class TestQuestionDefaults:
    def test_default_max_points_split_evenly(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [{"num": n, "point": 1} for n in range(1, 5)]}}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert [q.max_points for q in copy.questions] == [5, 5, 5, 5]

    def test_default_max_points_is_rounded(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [{"num": n, "point": 1} for n in range(1, 4)]}}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert [q.max_points for q in copy.questions] == [7, 7, 7]

    def test_default_total_is_twenty_without_configuration(self, submissions):
        raw = {"resultat": {"copie_1": {"questions": [{"num": 1, "point": 1}, {"num": 2, "point": 1}]}}}
        copy = normalize_response(raw, submissions, ScoringConfiguration()).copies[0]
        assert [q.max_points for q in copy.questions] == [10, 10]

    def test_question_weights_override_default(self, submissions):
        config = ScoringConfiguration(max_points_total=20, question_weights={2: 8})
        raw = {"resultat": {"copie_1": {"questions": [
            {"num": 1, "point": 1},
            {"num": 2, "point": 1},
            {"num": 3, "point": 1, "max_points": 2},
        ]}}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert [q.max_points for q in copy.questions] == [7, 8, 2]

    def test_type_and_answer_defaults(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [
            {"num": 1, "point": 1},
            {"num": 2, "point": 1, "type": "MCQ", "reponse": "B"},
            {"num": 3, "point": 1, "type": "open", "commentaire": "Bien"},
        ]}}}
        questions = normalize_response(raw, submissions, config).copies[0].questions
        assert [q.type for q in questions] == ["auto", "mcq", "auto"]
        assert questions[0].extracted_answer == OCR_PLACEHOLDER
        assert questions[1].extracted_answer == "B"
        assert questions[0].comment is None
        assert questions[2].comment == "Bien"

    def test_missing_question_number_uses_position(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [{"point": 1}, {"point": 2}]}}}
        questions = normalize_response(raw, submissions, config).copies[0].questions
        assert [q.question_number for q in questions] == [1, 2]

    def test_points_are_not_clamped_yet(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [{"num": 1, "point": 9, "max_points": 5}]}}}
        question = normalize_response(raw, submissions, config).copies[0].questions[0]
        assert question.awarded_points == 9


class TestShapes:
    def test_server_total_is_carried(self, submissions, config):
        raw = {"resultat": {"copie_1": live_entry(2, 3, note_totale=14.5)}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.reported_total == 14.5

    def test_total_only_entry_is_accepted(self, submissions, config):
        raw = {"resultat": {"copie_1": {"note_totale": 12}}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.reported_total == 12
        assert copy.questions == []

    def test_cached_shape(self, submissions, config):
        raw = {"resultat": {"copie_1": {
            "id": "c-1",
            "nomEleve": "Alice",
            "note": 12,
            "maxNote": 20,
            "pourcent": 99,
            "details": [
                {"question": 1, "type": "essay", "reponse": "Réponse rédigée",
                 "points": 2, "maxPoints": 4, "status": "partial", "comment": "Manque de précision"},
            ],
        }}}
        copy = normalize_response(raw, submissions, config).copies[0]
        assert copy.id == "c-1"
        assert copy.student_label == "alice.pdf"
        assert copy.reported_total == 12
        question = copy.questions[0]
        assert (question.question_number, question.type, question.max_points) == (1, "essay", 4)
        assert question.comment == "Manque de précision"

    def test_cached_shape_name_used_when_unresolved(self, config):
        raw = {"resultat": {"copie_1": {"nomEleve": "Alice", "details": []}}}
        copy = normalize_response(raw, [], config).copies[0]
        assert copy.student_label == "Alice"


class TestErrors:
    def test_partial_failure_is_collected(self, submissions, config):
        entries = {f"copie_{i}": live_entry(i) for i in range(1, 6)}
        entries["copie_3"] = {"questions": [{"num": 1, "point": "abc"}]}

        result = normalize_response({"resultat": entries}, submissions, config)

        assert len(result.copies) == 4
        assert [c.key for c in result.copies] == ["copie_1", "copie_2", "copie_4", "copie_5"]
        assert result.error_count == 1
        error = result.errors[0]
        assert isinstance(error, UnresolvableCopyError)
        assert error.copy_key == "copie_3"
        assert "point" in error.reason

    def test_entry_without_scores_is_rejected(self, submissions, config):
        result = normalize_response({"resultat": {"copie_1": {"nom_fichier": "a.pdf"}}}, submissions, config)
        assert result.copies == []
        assert result.errors[0].copy_key == "copie_1"

    def test_non_object_entry_is_rejected(self, submissions, config):
        result = normalize_response({"resultat": {"copie_1": "oops"}}, submissions, config)
        assert result.copies == []
        assert "str" in result.errors[0].reason

    def test_non_finite_points_are_rejected(self, submissions, config):
        raw = {"resultat": {"copie_1": {"questions": [{"num": 1, "point": float("nan")}]}}}
        result = normalize_response(raw, submissions, config)
        assert result.error_count == 1

    def test_failures_are_logged(self, submissions, config, caplog):
        with caplog.at_level("WARNING"):
            normalize_response({"resultat": {"copie_1": None}}, submissions, config)
        assert "copie_1" in caplog.text

    @pytest.mark.parametrize("raw", [None, [], "resultat", 3])
    def test_non_mapping_response_is_malformed(self, raw, submissions, config):
        with pytest.raises(MalformedResponseError):
            normalize_response(raw, submissions, config)

    def test_non_mapping_resultat_is_malformed(self, submissions, config):
        with pytest.raises(MalformedResponseError):
            normalize_response({"resultat": [live_entry(1)]}, submissions, config)

    def test_missing_resultat_gives_empty_result(self, submissions, config):
        result = normalize_response({}, submissions, config)
        assert result.copies == []
        assert result.errors == []
