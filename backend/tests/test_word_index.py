"""
Canticle Backend — Word Index Tests
=====================================

What we test:
    ✅ Short words are skipped and positions count indexed words only
    ✅ Concordance returns distinct documents and counts occurrences
    ✅ Limits trim the document list, never the count
"""

from canticle.search.word_index import concordance, index_word, index_words


class TestIndexWords:

    def test_positions_skip_short_words(self):
        assert index_words("In the beginning God created") == [
            ("the", 1), ("beginning", 2), ("god", 3), ("created", 4),
        ]

    def test_punctuation_and_case_removed(self):
        assert index_words("Light: and LIGHT.") == [("light", 1), ("and", 2), ("light", 3)]

    def test_index_word(self):
        assert index_word("God;") == "god"
        assert index_word("in") == ""
        assert index_word("!!") == ""


class TestConcordance:

    def setup_method(self):
        self.entries = []
        for document_id, text in [
            (3, "holy holy holy"),
            (1, "Holy is the Lord"),
            (2, "nothing here"),
        ]:
            self.entries.extend((word, document_id) for word, _ in index_words(text))

    def test_distinct_documents_and_occurrence_count(self):
        result = concordance(self.entries, "holy")
        assert result.document_ids == (1, 3)
        assert result.total_count == 4

    def test_sort_key_orders_documents(self):
        result = concordance(self.entries, "holy", sort_key=lambda document_id: -document_id)
        assert result.document_ids == (3, 1)

    def test_limit_keeps_count(self):
        result = concordance(self.entries, "HOLY!", limit=1)
        assert result.document_ids == (1,)
        assert result.total_count == 4
        assert result.word == "holy"

    def test_short_or_unknown_word(self):
        assert concordance(self.entries, "is").total_count == 0
        assert concordance(self.entries, "grace").document_ids == ()
