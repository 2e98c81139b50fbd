import pytest

from classifier_models import (
    AdvancedClassifierSnapshot,
    ClassifierSnapshot,
    FeedbackCounts,
    InvalidSnapshotError,
)
from embeddings import DIMENSIONS

VECTOR = [0.0] * (DIMENSIONS - 1) + [1.0]


def test_accepts_camel_case_and_snake_case():
    camel = ClassifierSnapshot.from_payload({"tagEmbeddings": {"a1": VECTOR}, "tagDocCounts": {"a1": 1}, "totalDocs": 1})
    snake = ClassifierSnapshot.from_payload({"tag_embeddings": {"a1": VECTOR}, "tag_doc_counts": {"a1": 1}, "total_docs": 1})
    assert camel == snake


def test_payload_uses_camel_case():
    payload = ClassifierSnapshot(total_docs=0).to_payload()
    assert payload == {
        "tagEmbeddings": {},
        "tagDocCounts": {},
        "totalDocs": 0,
        "tagDistinctiveWords": {},
        "docFrequency": {},
    }


def test_integral_float_total_is_accepted():
    assert ClassifierSnapshot.from_payload({"totalDocs": 4.0}).total_docs == 4


def test_optional_sections_may_be_null():
    snapshot = ClassifierSnapshot.from_payload({"totalDocs": 1, "tagEmbeddings": None, "docFrequency": None})
    assert snapshot.tag_embeddings == {}
    assert snapshot.doc_frequency == {}


def test_bad_counts_and_word_lists_are_dropped():
    snapshot = ClassifierSnapshot.from_payload({
        "totalDocs": 2,
        "tagEmbeddings": {"a1": VECTOR, "b2": VECTOR},
        "tagDocCounts": {"a1": 1, "b2": 2},
        "tagDistinctiveWords": {"a1": ["x1"], "b2": "not-a-list", "gone": ["y1"]},
        "docFrequency": {"x1": 1, "y1": -3, "z1": "many"},
    })

    assert snapshot.tag_distinctive_words == {"a1": ["x1"]}
    assert snapshot.doc_frequency == {"x1": 1}


def test_non_mapping_section_is_invalid():
    with pytest.raises(InvalidSnapshotError):
        ClassifierSnapshot.from_payload({"totalDocs": 1, "tagEmbeddings": [1, 2, 3]})


def test_existing_snapshot_passes_through():
    snapshot = ClassifierSnapshot(total_docs=1)
    assert ClassifierSnapshot.from_payload(snapshot) is snapshot


def test_advanced_snapshot_sections():
    snapshot = AdvancedClassifierSnapshot.from_payload({
        "totalDocs": 1,
        "tagHierarchy": {"python-django": ["python"], "broken": "python"},
        "userFeedback": {"python": {"accepted": 2, "rejected": 1}},
    })

    assert snapshot.tag_hierarchy == {"python-django": ["python"]}
    assert snapshot.user_feedback["python"].total == 3


def test_bad_feedback_entries_are_dropped(caplog):
    snapshot = AdvancedClassifierSnapshot.from_payload({
        "totalDocs": 1,
        "userFeedback": {
            "python": {"accepted": 2, "rejected": 1},
            "rust": {"accepted": -1},
            "go": "often",
        },
    })

    assert list(snapshot.user_feedback) == ["python"]
    assert "Dropping feedback for 'rust'" in caplog.text
    assert "Dropping feedback for 'go'" in caplog.text


def test_non_mapping_feedback_is_invalid():
    with pytest.raises(InvalidSnapshotError):
        AdvancedClassifierSnapshot.from_payload({"totalDocs": 1, "userFeedback": ["python"]})


def test_feedback_counts():
    assert FeedbackCounts().acceptance_rate == 0.0
    assert FeedbackCounts(accepted=3, rejected=1).acceptance_rate == 0.75
