import math

from vocabulary import DocumentFrequencyTracker


def test_observe_counts_each_token_once_per_document():
    tracker = DocumentFrequencyTracker()
    tracker.observe(["python", "python", "django"])
    tracker.observe(["python", "flask"])

    assert tracker.total_docs == 2
    assert tracker.doc_frequency("python") == 2
    assert tracker.doc_frequency("django") == 1
    assert tracker.doc_frequency("rust") == 0
    assert len(tracker) == 3


def test_document_ratio():
    tracker = DocumentFrequencyTracker()
    assert tracker.document_ratio("python") == 0.0

    tracker.observe(["python"])
    tracker.observe(["rust"])
    assert tracker.document_ratio("python") == 0.5


def test_idf_treats_unseen_tokens_as_single_document():
    tracker = DocumentFrequencyTracker()
    for i in range(9):
        tracker.observe([f"word{i}", "common"])

    assert tracker.idf("word0") == math.log(10 / 1)
    assert tracker.idf("common") == math.log(10 / 9)
    assert tracker.idf("unseen") == math.log(10 / 1)


def test_round_trip_through_counts():
    tracker = DocumentFrequencyTracker()
    tracker.observe(["a1", "b2"])
    restored = DocumentFrequencyTracker.from_counts(tracker.to_dict(), tracker.total_docs)

    assert restored.to_dict() == {"a1": 1, "b2": 1}
    assert restored.total_docs == 1


def test_clear():
    tracker = DocumentFrequencyTracker()
    tracker.observe(["a1"])
    tracker.clear()
    assert tracker.total_docs == 0
    assert tracker.doc_frequency("a1") == 0
