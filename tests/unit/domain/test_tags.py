"""Tests for the tag vocabulary and job profiles."""

from issue_index.domain.tags import JOB_TAG_MAPPING, STANDARD_TAGS, unknown_tags


class TestStandardTags:
    def test_vocabulary_size(self):
        assert len(STANDARD_TAGS) == 40

    def test_unknown_tags_preserves_order(self):
        assert unknown_tags(["LLM", "블록체인", "번역", "메타버스"]) == ["블록체인", "메타버스"]

    def test_unknown_tags_custom_vocabulary(self):
        assert unknown_tags(["LLM", "AI윤리"], vocabulary={"LLM"}) == ["AI윤리"]


class TestJobTagMapping:
    def test_thirteen_categories(self):
        assert len(JOB_TAG_MAPPING) == 13

    def test_profiles_use_standard_vocabulary(self):
        for tags in JOB_TAG_MAPPING.values():
            assert set(tags) <= STANDARD_TAGS
