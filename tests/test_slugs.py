"""Tests for label slugs, type inference and label references."""

import pytest

from build_registry.enums import LabelType
from build_registry.errors import ValidationError
from build_registry.services import LabelService
from build_registry.slugs import infer_label_type, parse_label_ref, slugify


class TestSlugify:
    """Test cases for slugify."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("main", "main"),
            ("Main", "main"),
            ("feature/login", "feature-login"),
            ("  My Branch! ", "my-branch-"),
            ("a!b!c", "a-b-c"),
            ("release/v1.2", "release-v1-2"),
            ("PROJ-123", "proj-123"),
        ],
    )
    def test_slugify(self, value, expected):
        assert slugify(value) == expected

    def test_case_whitespace_and_punctuation_insensitive(self):
        assert slugify(" My Branch! ") == slugify("my-branch!")

    def test_replaces_every_run(self):
        assert slugify("a  b//c") == "a-b-c"

    def test_non_ascii_is_replaced(self):
        assert slugify("café") == "caf-"

    def test_service_helper_matches(self):
        assert LabelService.slugify("Feature/Login") == "feature-login"


class TestInferLabelType:
    """Test cases for label type inference."""

    @pytest.mark.parametrize(
        "slug,expected",
        [
            ("42", LabelType.PR),
            ("0", LabelType.PR),
            ("proj-123", LabelType.JIRA),
            ("PROJ-123", LabelType.JIRA),
            ("main", LabelType.BRANCH),
            ("feature-login", LabelType.BRANCH),
            ("42a", LabelType.BRANCH),
            ("a-b-1", LabelType.BRANCH),
        ],
    )
    def test_infer(self, slug, expected):
        assert infer_label_type(slug) == expected

    def test_service_helper_matches(self):
        assert LabelService.infer_type("17") == LabelType.PR


class TestParseLabelRef:
    """Test cases for the slug[;type[;value]] shorthand."""

    def test_bare_slug(self):
        ref = parse_label_ref("main")
        assert ref.slug == "main"
        assert ref.type is None
        assert ref.value == "main"

    def test_slug_and_type(self):
        ref = parse_label_ref("42;pr")
        assert ref.slug == "42"
        assert ref.type == LabelType.PR
        assert ref.value == "42"

    def test_slug_type_and_value(self):
        ref = parse_label_ref("Feature X;branch;Feature X (draft)")
        assert ref.slug == "feature-x"
        assert ref.type == LabelType.BRANCH
        assert ref.value == "Feature X (draft)"

    def test_type_is_case_insensitive(self):
        assert parse_label_ref("proj-1;JIRA").type == LabelType.JIRA

    def test_empty_type_is_inferred_later(self):
        ref = parse_label_ref("main;;Main branch")
        assert ref.type is None
        assert ref.value == "Main branch"

    def test_slug_is_normalised(self):
        assert parse_label_ref(" Feature/Login ").slug == "feature-login"

    @pytest.mark.parametrize("raw", ["", "   ", ";pr", " ;branch;x"])
    def test_empty_slug_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_label_ref(raw)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_label_ref("main;tag")
        assert "tag" in exc_info.value.message
