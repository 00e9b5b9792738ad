"""Tests for partner closure computation and manifest sources."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import actor_spec, partner
from stagehand.errors import PreconditionError, ResolveError
from stagehand.resolver import (
    HttpManifestSource,
    PlaceholderManifestSource,
    Resolver,
    apply_partner_identity,
    compute_fetches,
    detect_cycles,
)
from stagehand.resources import Kind
from stagehand.schemas import Partner, Playbook


class TestComputeFetches:
    def test_no_partners(self):
        assert compute_fetches([actor_spec("a")]) == set()

    def test_missing_partner(self):
        actors = [actor_spec("a", partners=[partner("b")])]
        assert compute_fetches(actors) == {partner("b")}

    def test_existing_partner_by_url(self):
        # Same source under a different logical name is already present
        actors = [
            actor_spec("a", partners=[partner("other-name", "https://git.test/b.git/")]),
            actor_spec("b"),
        ]
        assert compute_fetches(actors) == set()

    def test_shared_partner_fetched_once(self):
        actors = [
            actor_spec("a", partners=[partner("c")]),
            actor_spec("b", partners=[partner("c")]),
        ]
        assert len(compute_fetches(actors)) == 1


class TestDetectCycles:
    def test_acyclic(self):
        actors = [actor_spec("a", partners=[partner("b")]), actor_spec("b")]
        assert detect_cycles(actors) == []

    def test_two_cycle(self):
        actors = [
            actor_spec("a", partners=[partner("b")]),
            actor_spec("b", partners=[partner("a")]),
        ]
        assert detect_cycles(actors) == [("https://git.test/b#main", "https://git.test/a#main")]

    def test_self_reference(self):
        actors = [actor_spec("a", partners=[partner("a")])]
        assert len(detect_cycles(actors)) == 1


class TestManifestSources:
    def test_placeholder_carries_identity(self):
        p = Partner(name="db", repository="https://git.test/db", reference="v1", path="svc", commit="abc")
        spec = PlaceholderManifestSource(description="stub").fetch(p)
        assert spec.url() == p.url()
        assert spec.description == "stub"
        assert spec.image == "db"
        assert spec.commit == "abc"

    def test_identity_overrides_manifest(self):
        spec = apply_partner_identity({"name": "ignored", "image": "custom"}, partner("db"))
        assert spec.name == "db"
        assert spec.image == "custom"

    def test_invalid_manifest(self):
        with pytest.raises(ResolveError):
            apply_partner_identity({"partners": [{"name": "x"}]}, partner("db"))

    def test_manifest_url(self):
        source = HttpManifestSource("{repository}/raw/{revision}/{path}")
        assert source.manifest_url(partner("db", "https://git.test/db.git")) == (
            "https://git.test/db/raw/main/.stagehand.yaml"
        )
        nested = Partner(name="db", repository="https://git.test/mono", path="/services/db/")
        assert source.manifest_url(nested) == "https://git.test/mono/raw/HEAD/services/db/.stagehand.yaml"

    def test_http_fetch(self):
        session = MagicMock()
        session.get.return_value.text = "description: Database\nimage: postgres:16\nlive: true\n"
        spec = HttpManifestSource("{repository}/raw/{revision}/{path}", session=session).fetch(partner("db"))

        assert spec.image == "postgres:16"
        assert spec.live is True
        assert spec.url() == partner("db").url()

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")
        source = HttpManifestSource("{repository}/raw/{revision}/{path}", session=session)
        with pytest.raises(ResolveError):
            source.fetch(partner("db"))

    @pytest.mark.parametrize("text", ["a: [", "- just\n- a list\n"])
    def test_bad_yaml(self, text):
        session = MagicMock()
        session.get.return_value.text = text
        source = HttpManifestSource("{repository}/raw/{revision}/{path}", session=session)
        with pytest.raises(ResolveError):
            source.fetch(partner("db"))


class TestResolver:
    def test_solved_playbook_is_untouched(self, store, make_playbook, resolver):
        playbook = Playbook.from_body(make_playbook())
        assert resolver.solve(store, playbook) is True
        assert store.mutations(Kind.PLAYBOOK, "patch") == []

    def test_adds_missing_partners(self, store, make_playbook, resolver, recorder):
        playbook = Playbook.from_body(make_playbook(actors=[
            actor_spec("web", partners=[partner("db"), partner("cache")]),
        ]))

        assert resolver.solve(store, playbook, recorder) is False

        stored = Playbook.from_body(store.get(Kind.PLAYBOOK, "demo"))
        assert [a.name for a in stored.spec.actors] == ["web", "cache", "db"]
        reasons = [e["reason"] for e in store.list(Kind.EVENT, "amp-demo")]
        assert reasons == ["PartnerAdded", "PartnerAdded"]

        # Next pass sees the grown list and converges
        assert resolver.solve(store, stored) is True

    def test_mismatched_manifest_identity(self, store, make_playbook):
        source = MagicMock()
        source.fetch.return_value = actor_spec("db", "https://git.test/elsewhere")
        playbook = Playbook.from_body(make_playbook(actors=[actor_spec("web", partners=[partner("db")])]))

        with pytest.raises(ResolveError):
            Resolver(source).solve(store, playbook)
        assert store.mutations(Kind.PLAYBOOK, "patch") == []

    def test_name_collision(self, store, make_playbook, resolver):
        # A partner named like an existing actor but with another source
        playbook = Playbook.from_body(make_playbook(actors=[
            actor_spec("web", partners=[partner("web", "https://git.test/other")]),
        ]))
        with pytest.raises(PreconditionError):
            resolver.solve(store, playbook)
