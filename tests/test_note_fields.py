import asyncio

import pytest

from errors import FieldNotFound
from note_fields import TITLE_FIELD, FieldResolver, build_strategies
from tests.fakes import FakeElement, FakePage

PLACEHOLDER_SEL = 'textarea[placeholder*="タイトル"]'
CONTENT_EDITABLE_SEL = 'div[contenteditable="true"][data-placeholder*="タイトル"]'
NESTED_SEL = '[data-testid*="title"]'


def test_strategy_order():
    names = [s.name for s in build_strategies(TITLE_FIELD)]
    assert names == ["placeholder", "label", "test-hook", "nested", "content-editable"]


def test_placeholder_strategy_fills_input(fast_timings):
    element = FakeElement(editable=True)
    page = FakePage({PLACEHOLDER_SEL: element})

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "My title"))

    assert match.strategy == "placeholder"
    assert match.selector == PLACEHOLDER_SEL
    assert element.value == "My title"


def test_content_editable_is_replaced_by_typing(fast_timings):
    element = FakeElement(content_editable=True)
    page = FakePage({CONTENT_EDITABLE_SEL: element})

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "My title"))

    assert match.strategy == "content-editable"
    assert element.clicks == 1
    assert ("press", "Control+A") in page.events
    assert page.typed == ["My title"]


def test_nested_strategy_fills_inner_input(fast_timings):
    inner = FakeElement(editable=True)
    page = FakePage({NESTED_SEL: FakeElement(children={"textarea, input": inner})})

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "Nested"))

    assert match.strategy == "nested"
    assert inner.value == "Nested"


def test_visible_but_inert_element_falls_through(fast_timings):
    inert = FakeElement()
    target = FakeElement(content_editable=True)
    page = FakePage({PLACEHOLDER_SEL: inert, CONTENT_EDITABLE_SEL: target})

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "x"))

    assert match.strategy == "content-editable"
    assert inert.value == ""


def test_heuristic_used_when_no_strategy_matches(fast_timings):
    page = FakePage(heuristic_result=True)

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "Fallback"))

    assert match.strategy == "heuristic"
    _, arg = page.evaluations[-1]
    assert arg == {"value": "Fallback", "keywords": ["タイトル", "title"]}


def test_field_not_found_when_heuristic_fails(fast_timings):
    page = FakePage(heuristic_result=False)

    with pytest.raises(FieldNotFound) as info:
        asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "x"))

    assert info.value.purpose == "title"
    assert "TITLE_INPUT_NOT_FOUND" in str(info.value)


def test_exhausted_budget_skips_to_heuristic(fast_timings):
    fast_timings.field_budget = 0
    page = FakePage({PLACEHOLDER_SEL: FakeElement(editable=True)}, heuristic_result=True)

    match = asyncio.run(FieldResolver(page, fast_timings).locate_and_set(TITLE_FIELD, "x"))

    assert match.strategy == "heuristic"
    assert page.locator_calls == []
