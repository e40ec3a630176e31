# tests/test_query.py
from datetime import UTC, datetime

from upvista_core.store import Filter, Order


def test_filter_renders_postgrest_operators() -> None:
    params = (
        Filter()
        .eq("is_published", True)
        .is_("deleted_at", None)
        .eq("visibility", "public")
        .gte("created_at", datetime(2025, 1, 1, tzinfo=UTC))
        .ilike("username", "al*")
        .to_params()
    )
    assert params == [
        ("is_published", "eq.true"),
        ("deleted_at", "is.null"),
        ("visibility", "eq.public"),
        ("created_at", "gte.2025-01-01T00:00:00Z"),
        ("username", "ilike.al*"),
    ]


def test_in_quotes_values_with_reserved_characters() -> None:
    params = Filter().in_("tag", ["plain", "a,b", 'say "hi"']).to_params()
    assert params == [("tag", 'in.(plain,"a,b","say \\"hi\\"")')]


def test_or_combines_alternatives() -> None:
    params = Filter().or_(Filter().eq("a", 1), Filter().is_("b", None)).to_params()
    assert params == [("or", "(a.eq.1,b.is.null)")]


def test_copy_does_not_share_conditions() -> None:
    base = Filter().eq("a", 1)
    extended = base.copy().eq("b", 2)
    assert base.to_params() == [("a", "eq.1")]
    assert len(extended.to_params()) == 2


def test_order_by_prefix_marks_descending() -> None:
    assert Order.by("-likes_count", "-published_at").render() == "likes_count.desc,published_at.desc"
    assert Order.by("created_at").render() == "created_at.asc"
