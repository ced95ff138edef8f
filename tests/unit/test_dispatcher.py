# tests/unit/test_dispatcher.py
from __future__ import annotations

import pytest

from gallery_agent.core.errors import ConsentUnavailableError
from gallery_agent.inputs.settings import AgentSettings
from gallery_agent.schemas.models import PendingMutation
from gallery_agent.tools.dispatcher import ToolOutput, registered_tools
from tests.utils import RecordingMedia, StubConsentBroker, make_call, make_dispatcher, make_people


def _last(d):
    return d.conversation.state.messages[-1]


def test_builtin_tools_registered(dispatcher):
    expected = {
        "search_photos",
        "delete_photos",
        "move_photos_to_album",
        "create_collage",
        "apply_filter",
        "get_photo_metadata",
        "scan_for_cleanup",
    }
    assert expected <= set(registered_tools())
    assert expected <= set(dispatcher.tool_names)


def test_unknown_tool_yields_error_payload(dispatcher):
    out = dispatcher.execute(make_call("teleport"))
    assert out == ToolOutput({"error": "Tool 'teleport' is not implemented."})
    assert out.to_content() == '{"error":"Tool \'teleport\' is not implemented."}'


def test_handler_exception_is_reported_not_raised(dispatcher):
    def boom(d, call):
        raise RuntimeError("disk full")

    dispatcher.register("explode", boom)
    out = dispatcher.execute(make_call("explode"))
    assert out.value == {"error": "Failed: disk full"}
    assert _last(dispatcher).sender == "error"
    assert "disk full" in _last(dispatcher).text


# ---------- Target resolution ----------


def test_manual_selection_beats_call_arguments(dispatcher):
    dispatcher.conversation.set_selection(["C", "D"])
    dispatcher.conversation.capture_selection()
    uris, source = dispatcher.resolve_target_uris({"photo_uris": ["A", "B"]})
    assert uris == ["C", "D"]
    assert source == "selection"


def test_explicit_source_wins(dispatcher):
    dispatcher.conversation.set_last_search_results(["S1", "S2"])
    dispatcher.conversation.set_selection(["C"])
    dispatcher.conversation.capture_selection()
    assert dispatcher.resolve_target_uris({"source": "search", "photo_uris": ["A"]}) == (["S1", "S2"], "search")
    assert dispatcher.resolve_target_uris({"image_uris_source": "selection"}) == (["C"], "selection")


def test_falls_back_to_arguments_then_empty(dispatcher):
    assert dispatcher.resolve_target_uris({"photo_uris": ["A", "", "B"]}) == (["A", "B"], "arguments")
    assert dispatcher.resolve_target_uris({"photo_uris": "A"}) == (["A"], "arguments")
    assert dispatcher.resolve_target_uris({}) == ([], "arguments")


# ---------- search_photos ----------


def test_search_ranks_and_caches_results(dispatcher):
    out = dispatcher.execute(make_call("search_photos", query="beach"))
    assert out.value == {"photos_found": 2}
    state = dispatcher.conversation.state
    assert state.last_search_results == ("img/beach.jpg", "img/beach_copy.jpg")
    msg = _last(dispatcher)
    assert msg.text == "Found 2 photos."
    assert msg.image_uris == ["img/beach.jpg", "img/beach_copy.jpg"]
    assert msg.has_selection_prompt


def test_search_without_semantic_match(dispatcher):
    out = dispatcher.execute(make_call("search_photos", query="volcano"))
    assert out.value == {"photos_found": 0}
    assert _last(dispatcher).text == "I looked through 4 photos but none matched 'volcano'."
    assert dispatcher.conversation.state.last_search_results == ()


def test_search_with_no_candidates(dispatcher):
    out = dispatcher.execute(make_call("search_photos", query="beach", location="Tokyo"))
    assert out.value == {"photos_found": 0}
    assert _last(dispatcher).text == "I couldn't find any photos matching those criteria."


def test_blank_query_lists_filtered_photos(dispatcher):
    out = dispatcher.execute(make_call("search_photos", query="", location="france"))
    assert out.value == {"photos_found": 3}


def test_search_people_filter(store, encoder):
    people = make_people(Me=["img/city.jpg"])
    d = make_dispatcher(store=store, encoder=encoder, people=people)

    out = d.execute(make_call("search_photos", query="", people=["me"]))
    assert out.value == {"photos_found": 1}
    assert d.conversation.state.last_search_results == ("img/city.jpg",)

    out = d.execute(make_call("search_photos", query="beach", people="Zed"))
    assert out.value == {"photos_found": 0}
    assert _last(d).text == "I couldn't find anyone named Zed."


def test_search_threshold_from_settings(store, encoder):
    settings = AgentSettings.model_validate({"search": {"similarity_threshold": 0.99999}})
    d = make_dispatcher(store=store, encoder=encoder, settings=settings)
    out = d.execute(make_call("search_photos", query="beach"))
    assert out.value == {"photos_found": 1}


# ---------- Consent-gated mutations ----------


def test_delete_suspends_with_pending_mutation(dispatcher, consent):
    out = dispatcher.execute(make_call("delete_photos", call_id="c9", photo_uris=["img/beach.jpg"]))
    assert out is None
    pending = dispatcher.tracker.pending
    assert pending is not None
    assert (pending.tool_call_id, pending.kind) == ("c9", "delete")
    assert pending.args == {"photo_uris": ["img/beach.jpg"]}
    assert consent.requests == [(["img/beach.jpg"], "delete")]


def test_delete_with_no_targets_skips_consent(dispatcher, consent):
    out = dispatcher.execute(make_call("delete_photos", source="search"))
    assert out.value == {"error": "No photos available from search source"}
    assert consent.requests == []
    assert not dispatcher.tracker.has_pending


def test_consent_unavailable_is_an_error_payload(store):
    d = make_dispatcher(store=store, consent=StubConsentBroker(available=False))
    out = d.execute(make_call("delete_photos", photo_uris=["a", "b"]))
    assert out.value == {"error": "Could not request delete permission for 2 photo(s)."}
    assert not d.tracker.has_pending


def test_unavailable_broker_raises_consent_error(store):
    d = make_dispatcher(store=store, consent=StubConsentBroker(available=False))
    with pytest.raises(ConsentUnavailableError, match="write permission for 1 photo"):
        d._issue_handle(["a"], "write")


def test_move_uses_default_album(dispatcher):
    assert dispatcher.execute(make_call("move_photos_to_album", photo_uris=["img/city.jpg"])) is None
    assert dispatcher.tracker.pending.args == {"photo_uris": ["img/city.jpg"], "album_name": "New Album"}


def test_complete_delete_soft_deletes_and_prunes(dispatcher, store):
    changes = []
    dispatcher.conversation.on_gallery_changed(lambda: changes.append(1))
    dispatcher.conversation.set_last_search_results(["img/beach.jpg", "img/city.jpg"])
    dispatcher.conversation.set_selection(["img/beach.jpg"])
    dispatcher.conversation.capture_selection()

    pending = PendingMutation(tool_call_id="c1", kind="delete", args={"photo_uris": ["img/beach.jpg"]})
    out = dispatcher.complete_mutation(pending, True)

    assert out == ToolOutput(True)
    assert store.by_uri("img/beach.jpg").is_deleted
    state = dispatcher.conversation.state
    assert state.last_search_results == ("img/city.jpg",)
    assert state.last_manual_selection == ()
    assert changes == [1]


def test_complete_delete_of_unknown_photo_is_not_success(dispatcher, store):
    pending = PendingMutation(tool_call_id="c1", kind="delete", args={"photo_uris": ["img/gone.jpg", "img/city.jpg"]})
    out = dispatcher.complete_mutation(pending, True)
    assert out == ToolOutput(False)
    assert store.by_uri("img/city.jpg").is_deleted
    assert _last(dispatcher).text == "Only 1 of 2 photo(s) could be deleted."


def test_complete_denied_never_touches_media(dispatcher, media, store):
    pending = PendingMutation(tool_call_id="c1", kind="write", args={"photo_uris": ["img/city.jpg"], "album_name": "X"})
    out = dispatcher.complete_mutation(pending, False)
    assert out == ToolOutput(False)
    assert media.calls == []
    assert _last(dispatcher).text == "User denied permission."
    assert not store.by_uri("img/city.jpg").is_deleted


def test_complete_move_reports_primitive_result(store):
    media = RecordingMedia(move_result=False)
    d = make_dispatcher(store=store, media=media)
    pending = PendingMutation(tool_call_id="c1", kind="write", args={"photo_uris": ["img/city.jpg"], "album_name": "Trips"})
    assert d.complete_mutation(pending, True) == ToolOutput(False)
    assert media.called("move_to_album") == [(["img/city.jpg"], "Trips")]


# ---------- Media tools ----------


def test_collage_caps_photos_and_defaults_title(dispatcher, media):
    uris = [f"p{i}" for i in range(6)]
    out = dispatcher.execute(make_call("create_collage", photo_uris=uris))
    assert out.value == "out/collage.jpg"
    assert media.called("create_collage") == [(uris[:4], "My Collage")]
    msg = _last(dispatcher)
    assert msg.text == "I've created the collage 'My Collage'."
    assert msg.image_uris == ["out/collage.jpg"]


def test_collage_without_output_is_null(store):
    d = make_dispatcher(store=store, media=RecordingMedia(collage_uri=None))
    out = d.execute(make_call("create_collage", photo_uris=["a"], title="Trip"))
    assert out.value is None
    assert out.to_content() == "null"


def test_apply_filter_defaults_to_grayscale(dispatcher, media):
    out = dispatcher.execute(make_call("apply_filter", photo_uris=["a"]))
    assert out.value == ["a.grayscale.jpg"]
    assert _last(dispatcher).text == "I've applied the 'grayscale' filter."


def test_metadata_returns_plain_string(dispatcher):
    out = dispatcher.execute(make_call("get_photo_metadata", photo_uris=["a", "b"]))
    assert out.value == "2 photo(s)"
    assert out.to_content() == '"2 photo(s)"'


# ---------- scan_for_cleanup ----------


def test_scan_finds_near_copies(dispatcher):
    out = dispatcher.execute(make_call("scan_for_cleanup"))
    assert out.value == {"found_sets": 1}
    groups = dispatcher.conversation.state.cleanup_groups
    assert groups[0].primary_uri == "img/beach.jpg"
    assert groups[0].duplicate_uris == ["img/beach_copy.jpg"]
    assert _last(dispatcher).is_cleanup_prompt


def test_scan_with_nothing_similar(store):
    settings = AgentSettings.model_validate({"cleanup": {"duplicate_threshold": 0.99999}})
    d = make_dispatcher(store=store, settings=settings)
    assert d.execute(make_call("scan_for_cleanup")).value == {"found_sets": 0}
    assert _last(d).text == "No duplicates found."
