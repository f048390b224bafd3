"""
Canticle Backend — Query Parser Tests
=======================================

What we test:
    ✅ Bare words become AND-groups, `or` joins alternatives
    ✅ Quoted phrases keep word order and stop words
    ✅ A leading `-` excludes a word or phrase
    ✅ Malformed input degrades instead of failing
"""

from canticle.search.query import parse_query


def _group_words(parsed):
    return [[clause.words for clause in group] for group in parsed.groups]


class TestParseQuery:

    def test_bare_words_are_anded(self):
        parsed = parse_query("amazing grace")
        assert _group_words(parsed) == [[("amazing",)], [("grace",)]]
        assert parsed.phrase == "amazing grace"
        assert parsed.stems == frozenset({"amaz", "grac"})

    def test_or_joins_the_previous_group(self):
        parsed = parse_query("grace OR mercy love")
        assert _group_words(parsed) == [[("grace",), ("mercy",)], [("love",)]]

    def test_leading_and_trailing_or_ignored(self):
        parsed = parse_query("or grace or")
        assert _group_words(parsed) == [[("grace",)]]

    def test_quoted_phrase_keeps_stop_words(self):
        parsed = parse_query('"face of the deep"')
        clause = parsed.groups[0][0]
        assert clause.words == ("face", "of", "the", "deep")
        assert clause.is_phrase

    def test_exclusions(self):
        parsed = parse_query('light -darkness -"the deep"')
        assert _group_words(parsed) == [[("light",)]]
        assert [clause.words for clause in parsed.excluded] == [("darkness",), ("the", "deep")]

    def test_stop_words_dropped_as_terms(self):
        parsed = parse_query("the and of")
        assert not parsed.has_terms
        assert not parsed.is_empty

    def test_unbalanced_quote_becomes_plain_words(self):
        parsed = parse_query('"amazing grace')
        assert _group_words(parsed) == [[("amazing",)], [("grace",)]]

    def test_lone_dash_and_empty_quotes_ignored(self):
        parsed = parse_query('- "" grace')
        assert _group_words(parsed) == [[("grace",)]]
        assert parsed.excluded == ()

    def test_empty_and_none(self):
        assert parse_query("").is_empty
        assert parse_query(None).is_empty
        assert parse_query("   ").groups == ()

    def test_punctuation_inside_words(self):
        parsed = parse_query("Lord's")
        assert _group_words(parsed) == [[("lords",)]]
