"""Tests for the title spam heuristic."""

from feed_ingest.feeds.spam import SPAM_THRESHOLD, is_spam, spam_score


class TestSpamScore:
    def test_counts_distinct_words(self):
        assert spam_score("Free free FREE bitcoin") == 2

    def test_matches_whole_words_only(self):
        # "freedom" and "cashew" must not count as "free" and "cash"
        assert spam_score("Freedom of cashew farmers") == 0

    def test_empty_title(self):
        assert spam_score("") == 0
        assert spam_score(None) == 0


class TestIsSpam:
    def test_three_words_is_spam(self):
        assert is_spam("Free Bitcoin Giveaway today only")

    def test_two_words_is_kept(self):
        assert not is_spam("Free bitcoin explained for beginners")

    def test_default_threshold(self):
        assert SPAM_THRESHOLD == 3

    def test_custom_threshold(self):
        assert is_spam("Win cash", threshold=2)
