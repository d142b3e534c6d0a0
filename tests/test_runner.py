from runner import render_event

from eventsource.shared.models import Event


def test_render_event_shows_type_id_and_data():
    line = render_event(Event(event_type="update", event_id="4", data="hello"))

    assert "update" in line
    assert "id=4" in line
    assert "hello" in line


def test_render_event_escapes_markup():
    line = render_event(Event(data="[bold]not markup[/]"))

    assert "\\[bold]" in line
