import pytest

from models import Timings


@pytest.fixture
def fast_timings():
    return Timings(
        field_wait=0.01,
        field_budget=5,
        nested_field_wait=0.01,
        body_wait=0.01,
        enable_poll_attempts=3,
        enable_poll_interval=0,
        paste_settle=0,
        insert_settle=0,
        draft_confirm_wait=0.01,
        publish_surface_wait=0.05,
        tag_pace=0,
        published_url_wait=0.05,
        published_text_wait=0.05,
        publish_settle=0.01,
        page_default_timeout=1,
    )
