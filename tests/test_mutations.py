"""
test_mutations.py — Create / edit / dismiss / report / comments against the
in-memory relief API, plus category mapping and the author identity.
"""

import asyncio

import pytest

from relieflink.core.errors import MutationFailure, SourceFetchFailure, ValidationFailure
from relieflink.core.identity import IdentityStore
from relieflink.models.pins import CommentDraft, Pin, PinDraft, PinEdit
from relieflink.services.mutations import MutationCoordinator, map_categories, validate_draft
from relieflink.services.source_fetcher import SourceFetcher, parse_records
from tests.factories import make_pin


def _draft(**overrides):
    fields = dict(kind="need", categories=["Water"], body="Need bottled water", lat=29.76, lng=-95.37)
    fields.update(overrides)
    return PinDraft(**fields)


# ── Category vocabulary ───────────────────────────────────────────────────────

class TestCategoryMapping:
    def test_selector_values_map_to_canonical(self):
        assert map_categories(["Food", "Transportation", "Medical"]) == ["food", "transport", "medical"]

    def test_supplies_fans_out(self):
        assert map_categories(["Supplies"]) == ["supplies", "clothing"]

    def test_duplicates_collapse_in_order(self):
        assert map_categories(["Clothing", "Supplies"]) == ["clothing", "supplies"]

    def test_unknown_becomes_other(self):
        assert map_categories(["Pets", "other"]) == ["other"]

    def test_case_insensitive_and_blank_ignored(self):
        assert map_categories(["  WATER ", ""]) == ["water"]


class TestValidateDraft:
    def test_complete_draft_has_no_errors(self):
        assert validate_draft(_draft()) == []

    def test_missing_fields_reported(self):
        errors = validate_draft(PinDraft())
        assert "categories must not be empty" in errors
        assert "body must not be empty" in errors
        assert "lat is required" in errors
        assert "lng is required" in errors

    def test_body_too_long(self):
        errors = validate_draft(_draft(body="x" * 201))
        assert errors == ["body must be at most 200 characters"]

    def test_out_of_range_coordinate(self):
        assert validate_draft(_draft(lat=91.0)) == ["lat must be within ±90"]


# ── create ────────────────────────────────────────────────────────────────────

class TestCreate:
    async def test_missing_categories_fails_before_network(self, session, fake_api):
        with pytest.raises(ValidationFailure) as exc_info:
            await session.mutations.create(_draft(categories=[]))
        assert "categories must not be empty" in exc_info.value.errors
        assert fake_api.requests == []

    async def test_create_posts_then_refetches_pins(self, session, fake_api, identity):
        pin = await session.mutations.create(_draft(categories=["Supplies"], title="  "))

        assert fake_api.requests == ["POST /api/pins", "GET /api/pins"]
        assert pin.categories == ["supplies", "clothing"]
        assert pin.title is None
        assert pin.author_anon_id == identity.get_or_create()

        ids = [loc.id for loc in session.aggregator.locations]
        assert ids == [pin.id]

    async def test_create_failure_leaves_snapshot(self, session, fake_api):
        fake_api.pins = [make_pin("p1")]
        await session.pins.fetch()
        fake_api.fail.add("POST /api/pins")

        with pytest.raises(MutationFailure) as exc_info:
            await session.mutations.create(_draft())

        assert exc_info.value.status_code == 500
        assert [p.id for p in session.pins.snapshot.items()] == ["p1"]

    async def test_local_edit_during_refetch_supersedes_it(self, fake_api, identity):
        fake_api.pins = [make_pin("p1", body="original")]
        client = fake_api.client()
        release = asyncio.Event()

        async def gated_pins():
            raw = await client.get_pins()
            await release.wait()
            return raw

        pins = SourceFetcher("pins", gated_pins, parse_records(Pin, "pins"))
        pins.replace([Pin.model_validate(fake_api.pins[0])])
        coordinator = MutationCoordinator(client, pins, identity)

        task = asyncio.create_task(coordinator.create(_draft()))
        while not pins.loading:
            await asyncio.sleep(0)
        coordinator.update("p1", PinEdit(body="edited"))
        release.set()
        created = await task

        assert [p.id for p in pins.snapshot.items()] == ["p1"]
        assert pins.snapshot.items()[0].body == "edited"

        await pins.fetch()
        assert created.id in [p.id for p in pins.snapshot.items()]


# ── update (local only) ───────────────────────────────────────────────────────

class TestUpdate:
    async def test_update_is_local_and_lost_on_refetch(self, session, fake_api):
        fake_api.pins = [make_pin("p1", body="original")]
        await session.pins.fetch()
        calls_before = len(fake_api.requests)

        edited = session.mutations.update("p1", PinEdit(body="edited"))
        assert edited.body == "edited"
        assert session.aggregator.find("p1").description == "edited"
        assert len(fake_api.requests) == calls_before

        await session.pins.fetch()
        assert session.aggregator.find("p1").description == "original"

    async def test_update_unknown_pin(self, session):
        with pytest.raises(MutationFailure) as exc_info:
            session.mutations.update("nope", PinEdit(body="x"))
        assert exc_info.value.status_code is None

    async def test_update_maps_categories(self, session, fake_api):
        fake_api.pins = [make_pin("p1")]
        await session.pins.fetch()
        edited = session.mutations.update("p1", PinEdit(categories=["Transportation"]))
        assert edited.categories == ["transport"]

    async def test_update_rejects_empty_body(self, session, fake_api):
        fake_api.pins = [make_pin("p1")]
        await session.pins.fetch()
        with pytest.raises(ValidationFailure):
            session.mutations.update("p1", PinEdit(body="   "))

    async def test_update_moves_focus_with_pin(self, session, fake_api):
        fake_api.pins = [make_pin("p1", lat=29.7, lng=-95.3)]
        await session.pins.fetch()
        assert session.viewport.focus.id == "p1"

        session.mutations.update("p1", PinEdit(lat=30.0, lng=-95.0))
        assert (session.viewport.focus.lat, session.viewport.focus.lon) == (30.0, -95.0)
        assert session.viewport.state().recenter is True


# ── dismiss / report ──────────────────────────────────────────────────────────

class TestDismissAndReport:
    async def test_dismiss_own_pin(self, session, fake_api, identity):
        fake_api.pins = [make_pin("p1", author_anon_id=identity.get_or_create()), make_pin("p2")]
        await session.pins.fetch()

        await session.mutations.delete("p1")

        assert [p.id for p in session.pins.snapshot.items()] == ["p2"]
        assert fake_api.last_params["POST /api/pins/p1/dismiss"] == {"author_anon_id": identity.get_or_create()}

    async def test_dismiss_with_wrong_token_fails_and_pin_survives(self, session, fake_api):
        fake_api.pins = [make_pin("p1", author_anon_id="anon_owner")]
        await session.pins.fetch()

        with pytest.raises(MutationFailure) as exc_info:
            await session.mutations.delete("p1", author_token="anon_intruder")
        assert exc_info.value.status_code == 403
        assert session.aggregator.find("p1") is not None

        await session.pins.fetch()
        assert session.aggregator.find("p1") is not None

    async def test_report_removes_locally(self, session, fake_api):
        fake_api.pins = [make_pin("p1"), make_pin("p2")]
        await session.pins.fetch()

        await session.mutations.report("p2")

        assert [p.id for p in session.pins.snapshot.items()] == ["p1"]
        assert "POST /api/pins/p2/report" in fake_api.requests

    async def test_ok_false_is_a_failure(self, session, fake_api, monkeypatch):
        fake_api.pins = [make_pin("p1")]
        await session.pins.fetch()

        async def refused(pin_id):
            return {"ok": False}

        monkeypatch.setattr(session.client, "report_pin", refused)
        with pytest.raises(MutationFailure):
            await session.mutations.report("p1")
        assert session.aggregator.find("p1") is not None

    async def test_report_unknown_pin(self, session):
        with pytest.raises(MutationFailure) as exc_info:
            await session.mutations.report("ghost")
        assert exc_info.value.status_code == 404


# ── comments ──────────────────────────────────────────────────────────────────

class TestComments:
    async def test_add_and_list(self, session, fake_api):
        comment = await session.mutations.comment("p1", CommentDraft(body=" on my way "))
        assert comment.body == "on my way"

        comments = await session.mutations.list_comments("p1")
        assert [c.body for c in comments] == ["on my way"]

    async def test_empty_comment_rejected(self, session, fake_api):
        with pytest.raises(ValidationFailure):
            await session.mutations.comment("p1", CommentDraft(body=""))
        assert fake_api.requests == []

    async def test_list_failure(self, session, fake_api):
        fake_api.fail.add("GET /api/pins/p1/comments")
        with pytest.raises(SourceFetchFailure):
            await session.mutations.list_comments("p1")


# ── identity ──────────────────────────────────────────────────────────────────

class TestIdentity:
    def test_token_generated_once_and_persisted(self, tmp_path):
        path = tmp_path / "nested" / "author_id"
        token = IdentityStore(path).get_or_create()
        assert token.startswith("anon_")
        assert path.read_text(encoding="utf-8") == token
        assert IdentityStore(path).get_or_create() == token

    def test_existing_file_is_reused(self, tmp_path):
        path = tmp_path / "author_id"
        path.write_text("anon_fixed\n", encoding="utf-8")
        assert IdentityStore(path).get_or_create() == "anon_fixed"

    def test_unwritable_path_still_yields_token(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = IdentityStore(blocker / "author_id")
        token = store.get_or_create()
        assert token.startswith("anon_")
        assert store.get_or_create() == token
