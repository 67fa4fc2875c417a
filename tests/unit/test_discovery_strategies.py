"""
Tests for the discovery strategies and the strategy factory
"""
import pytest

from similar_artists.discovery import (
    ArtistDiscoveryStrategy,
    ContextDiscoveryStrategy,
    GenreDiscoveryStrategy,
    TrackDiscoveryStrategy,
    create_strategy,
    get_supported_modes,
)
from similar_artists.discovery.context_strategy import collapse_by_artist
from similar_artists.discovery.genre_strategy import split_genres, tag_budget
from similar_artists.errors import CancellationError, ProviderErrorKind
from similar_artists.models import Candidate, CandidatePool, SeedArtist
from similar_artists.run_config import DiscoveryMode, RunConfig
from tests.fixtures.fakes import FakeContext, FakeSimilarity, seed_track


def seeds_of(*names):
    return [SeedArtist(name) for name in names]


def track_seeds(*pairs, genre=""):
    return [SeedArtist(artist, source_track=seed_track(artist, title, genre=genre)) for artist, title in pairs]


def batch_summary(batches):
    return [(b.artist_name, b.titles) for b in batches]


class TestArtistDiscovery:
    def setup_method(self):
        self.similarity = FakeSimilarity(
            similar_artists={
                "Pink Floyd": ["Yes", "Genesis", "Camel"],
                "Camel": ["Caravan", "Yes"],
            },
            top_tracks={
                "Yes": ["Roundabout", "Heart of the Sunrise", "Owner of a Lonely Heart"],
                "Genesis": ["Mama", "Firth of Fifth"],
                "Camel": ["Lady Fantasy"],
                "Caravan": ["Golf Girl"],
                "Pink Floyd": ["Time"],
            },
        )
        self.strategy = ArtistDiscoveryStrategy(self.similarity)

    def test_similar_artists_expand_to_top_tracks(self):
        config = RunConfig(similar_limit=2, tracks_per_artist=2)

        batches = list(self.strategy.discover_batches(seeds_of("Pink Floyd"), config))

        assert batch_summary(batches) == [
            ("Yes", ["Roundabout", "Heart of the Sunrise"]),
            ("Genesis", ["Mama", "Firth of Fifth"]),
        ]

    def test_blacklisted_artist_costs_no_track_lookup(self):
        config = RunConfig(similar_limit=3, blacklist=frozenset({"genesis"}))

        batches = list(self.strategy.discover_batches(seeds_of("Pink Floyd"), config))

        assert [b.artist_name for b in batches] == ["Yes", "Camel"]
        assert ("get_top_tracks", "Genesis") not in self.similarity.log
        assert self.strategy.stats["blacklisted"] == 1

    def test_include_seed_artist_comes_first(self):
        config = RunConfig(similar_limit=1, include_seed_artist=True)

        batches = list(self.strategy.discover_batches(seeds_of("Pink Floyd"), config))

        assert [b.artist_name for b in batches] == ["Pink Floyd", "Yes"]

    def test_artist_seen_via_two_seeds_is_expanded_once(self):
        config = RunConfig(similar_limit=3)

        batches = list(self.strategy.discover_batches(seeds_of("Pink Floyd", "Camel"), config))

        assert [b.artist_name for b in batches] == ["Yes", "Genesis", "Camel", "Caravan"]

    def test_failing_seed_is_skipped(self):
        similarity = FakeSimilarity(
            similar_artists={"Camel": ["Caravan"]},
            top_tracks={"Caravan": ["Golf Girl"]},
            fail={"Pink Floyd": ProviderErrorKind.TIMEOUT},
        )
        strategy = ArtistDiscoveryStrategy(similarity)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd", "Camel"), RunConfig()))

        assert [b.artist_name for b in batches] == ["Caravan"]
        assert strategy.stats["provider_failures"] == 1

    def test_seed_limit(self):
        config = RunConfig(seed_limit=1, similar_limit=5)

        list(self.strategy.discover_batches(seeds_of("Pink Floyd", "Camel"), config))

        assert ("get_similar_artists", "Camel") not in self.similarity.log

    def test_trailing_prefix_is_restored_for_queries(self):
        list(self.strategy.discover_batches(seeds_of("Beatles, The"), RunConfig()))

        assert ("get_similar_artists", "The Beatles") in self.similarity.log

    def test_batches_are_produced_lazily(self):
        batches = self.strategy.discover_batches(seeds_of("Pink Floyd"), RunConfig(similar_limit=3))

        first = next(batches)
        batches.close()

        assert first.artist_name == "Yes"
        assert self.similarity.calls["get_top_tracks"] == 1

    def test_duplicate_titles_collapse(self):
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": ["Yes"]},
            top_tracks={"Yes": ["Roundabout", "ROUNDABOUT", "Heart"]},
        )

        batches = list(ArtistDiscoveryStrategy(similarity).discover_batches(seeds_of("Pink Floyd"), RunConfig()))

        assert batches[0].titles == ["Roundabout", "Heart"]

    def test_ranked_candidates_carry_playcount(self):
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": ["Yes"]},
            top_tracks={"Yes": ["Roundabout"]},
            playcounts={"Roundabout": 5000},
        )

        batches = list(ArtistDiscoveryStrategy(similarity).discover_batches(seeds_of("Pink Floyd"), RunConfig(rank=True)))

        assert batches[0].candidates[0].score == 5000.0

    def test_checkpoint_stops_discovery(self):
        calls = []

        def checkpoint():
            calls.append(1)
            if len(calls) > 2:
                raise CancellationError()

        strategy = ArtistDiscoveryStrategy(self.similarity, checkpoint=checkpoint)

        with pytest.raises(CancellationError):
            list(strategy.discover_batches(seeds_of("Pink Floyd"), RunConfig(similar_limit=3)))
        assert self.similarity.calls["get_top_tracks"] == 1


class TestTrackDiscovery:
    def test_results_grouped_by_artist_sorted_by_match(self):
        similarity = FakeSimilarity(similar_tracks={"Pink Floyd": [
            {"artist": "Yes", "title": "A", "match": 0.5},
            {"artist": "Genesis", "title": "B", "match": 0.9},
            {"artist": "Yes", "title": "C", "match": 0.8},
        ]})
        strategy = TrackDiscoveryStrategy(similarity)

        batches = list(strategy.discover_batches(track_seeds(("Pink Floyd", "Time")), RunConfig()))

        assert batch_summary(batches) == [("Yes", ["C", "A"]), ("Genesis", ["B"])]
        assert similarity.calls["get_top_tracks"] == 0

    def test_seed_without_title_is_skipped(self):
        similarity = FakeSimilarity()
        strategy = TrackDiscoveryStrategy(similarity)

        assert list(strategy.discover_batches(seeds_of("Pink Floyd"), RunConfig())) == []
        assert similarity.calls["get_similar_tracks"] == 0

    def test_tracks_per_artist_cap_spans_seeds(self):
        similarity = FakeSimilarity(similar_tracks={
            "Pink Floyd": [{"artist": "Yes", "title": "A", "match": 0.9}],
            "Camel": [
                {"artist": "Yes", "title": "A", "match": 0.9},
                {"artist": "Yes", "title": "B", "match": 0.8},
                {"artist": "Yes", "title": "C", "match": 0.7},
            ],
        })
        seeds = track_seeds(("Pink Floyd", "Time"), ("Camel", "Lady Fantasy"))

        batches = list(TrackDiscoveryStrategy(similarity).discover_batches(seeds, RunConfig(tracks_per_artist=2)))

        assert batch_summary(batches) == [("Yes", ["A"]), ("Yes", ["B"])]

    def test_blacklisted_artists_dropped(self):
        similarity = FakeSimilarity(similar_tracks={"Pink Floyd": [
            {"artist": "Yes", "title": "A", "match": 0.5},
            {"artist": "Genesis", "title": "B", "match": 0.9},
        ]})

        batches = list(TrackDiscoveryStrategy(similarity).discover_batches(
            track_seeds(("Pink Floyd", "Time")), RunConfig(blacklist=frozenset({"Yes"})),
        ))

        assert [b.artist_name for b in batches] == ["Genesis"]

    def test_include_seed_artist_puts_seed_track_first(self):
        similarity = FakeSimilarity(similar_tracks={"Pink Floyd": [
            {"artist": "Yes", "title": "A", "match": 0.5},
        ]})

        batches = list(TrackDiscoveryStrategy(similarity).discover_batches(
            track_seeds(("Pink Floyd", "Time")), RunConfig(include_seed_artist=True),
        ))

        assert batch_summary(batches) == [("Pink Floyd", ["Time"]), ("Yes", ["A"])]

    def test_seed_limit_caps_seed_tracks(self):
        similarity = FakeSimilarity()
        seeds = track_seeds(("A1", "t1"), ("A2", "t2"), ("A3", "t3"), ("A4", "t4"), ("A5", "t5"))

        list(TrackDiscoveryStrategy(similarity).discover_batches(seeds, RunConfig(seed_limit=2)))

        assert similarity.calls["get_similar_tracks"] == 2
        assert [entry[1] for entry in similarity.log] == ["A1", "A2"]

    def test_every_track_of_a_seed_artist_is_queried(self):
        similarity = FakeSimilarity(similar_tracks={"Pink Floyd": [
            {"artist": "Yes", "title": "A", "match": 0.5},
        ]})
        seed = SeedArtist(
            "Pink Floyd",
            source_track=seed_track("Pink Floyd", "Time"),
            other_tracks=(seed_track("Pink Floyd", "Money"), seed_track("Pink Floyd", "TIME")),
        )

        list(TrackDiscoveryStrategy(similarity).discover_batches([seed], RunConfig()))

        assert similarity.log == [
            ("get_similar_tracks", "Pink Floyd", "Time"),
            ("get_similar_tracks", "Pink Floyd", "Money"),
        ]


class TestGenreDiscovery:
    def test_split_genres(self):
        assert split_genres("Rock; Prog Rock/Art Rock, ") == ["rock", "prog rock", "art rock"]
        assert split_genres("") == []

    @pytest.mark.parametrize("similar_limit,expected", [
        (1, (1, 1)),
        (5, (1, 5)),
        (12, (3, 4)),
        (30, (5, 6)),
        (100, (5, 20)),
    ])
    def test_tag_budget(self, similar_limit, expected):
        assert tag_budget(similar_limit) == expected

    def test_seed_genres_outweigh_provider_tags(self):
        similarity = FakeSimilarity(artist_tags={"Pink Floyd": ["psychedelic", "rock"]})
        strategy = GenreDiscoveryStrategy(similarity)
        seeds = track_seeds(("Pink Floyd", "Time"), genre="Rock; Prog Rock")

        tags = strategy.collect_tags(seeds, RunConfig(similar_limit=15))

        assert tags == ["rock", "prog rock", "psychedelic"]

    def test_enough_seed_genres_skip_tag_lookup(self):
        similarity = FakeSimilarity()
        strategy = GenreDiscoveryStrategy(similarity)
        seeds = track_seeds(("Pink Floyd", "Time"), genre="Rock; Prog Rock")

        assert strategy.collect_tags(seeds, RunConfig(similar_limit=10)) == ["rock", "prog rock"]
        assert similarity.calls["get_artist_tags"] == 0

    def test_tag_artists_expanded_and_blacklist_not_counted(self):
        similarity = FakeSimilarity(
            tag_artists={"rock": ["Nickelback", "Yes", "Genesis"]},
            top_tracks={"Yes": ["Roundabout"], "Genesis": ["Mama"]},
        )
        seeds = track_seeds(("Pink Floyd", "Time"), genre="Rock")
        config = RunConfig(similar_limit=3, blacklist=frozenset({"Nickelback"}))

        batches = list(GenreDiscoveryStrategy(similarity).discover_batches(seeds, config))

        assert batch_summary(batches) == [("Yes", ["Roundabout"]), ("Genesis", ["Mama"])]
        assert ("get_top_tracks", "Nickelback") not in similarity.log
        assert ("get_tag_top_artists", "rock", 3) in similarity.log


class TestContextDiscovery:
    RECOMMENDATIONS = [
        {"artist": "Daft Punk", "title": "One More Time", "score": 0.9},
        {"artist": "Justice", "title": "D.A.N.C.E.", "score": 0.8},
        {"artist": "Daft Punk", "title": "Harder, Better, Faster, Stronger", "score": 0.7},
    ]

    def mood_config(self, **kwargs):
        values = dict(discovery_mode=DiscoveryMode.MOOD, context_value="energetic", similar_limit=4)
        values.update(kwargs)
        return RunConfig(**values)

    def test_ratio_zero_uses_context_titles_only(self):
        similarity = FakeSimilarity()
        context = FakeContext(self.RECOMMENDATIONS)
        strategy = ContextDiscoveryStrategy(similarity, context, DiscoveryMode.MOOD)
        seeds = track_seeds(("Pink Floyd", "Time"), genre="Rock")

        batches = list(strategy.discover_batches(seeds, self.mood_config(blend_ratio=0.0)))

        assert batch_summary(batches) == [
            ("Daft Punk", ["One More Time", "Harder, Better, Faster, Stronger"]),
            ("Justice", ["D.A.N.C.E."]),
        ]
        assert similarity.total_calls == 0
        assert context.requests == [{
            "kind": "mood", "value": "energetic", "genres": ["rock"], "limit": 4, "duration": 60,
        }]

    def test_ratio_one_skips_context_provider(self):
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": ["Yes"]},
            top_tracks={"Yes": ["Roundabout"]},
        )
        context = FakeContext(self.RECOMMENDATIONS)
        strategy = ContextDiscoveryStrategy(similarity, context, DiscoveryMode.MOOD)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd"), self.mood_config(blend_ratio=1.0)))

        assert batch_summary(batches) == [("Yes", ["Roundabout"])]
        assert context.calls["get_context_recommendations"] == 0

    def test_even_blend_interleaves_pools(self):
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": ["Yes", "Genesis", "Camel"]},
            top_tracks={"Yes": ["Roundabout"], "Genesis": ["Mama"]},
        )
        context = FakeContext(self.RECOMMENDATIONS)
        strategy = ContextDiscoveryStrategy(similarity, context, DiscoveryMode.MOOD)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd"), self.mood_config(blend_ratio=0.5)))

        assert [b.artist_name for b in batches] == ["Yes", "Daft Punk", "Genesis", "Justice"]
        assert [b.candidates[0].origin_pool for b in batches] == [
            CandidatePool.SEED, CandidatePool.CONTEXT, CandidatePool.SEED, CandidatePool.CONTEXT,
        ]
        assert similarity.calls["get_top_tracks"] == 2

    def test_multi_title_context_artists_take_one_slot_each(self):
        similar = [f"Seed {i}" for i in range(10)]
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": similar},
            top_tracks={name: [f"{name} hit"] for name in similar},
        )
        recommendations = [
            {"artist": f"Context {i}", "title": f"Song {i}{part}", "score": 0.5}
            for i in range(10) for part in "ab"
        ]
        strategy = ContextDiscoveryStrategy(similarity, FakeContext(recommendations), DiscoveryMode.MOOD)
        config = self.mood_config(blend_ratio=0.5, similar_limit=10, tracks_per_artist=2)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd"), config))

        origins = [b.candidates[0].origin_pool for b in batches]
        assert origins.count(CandidatePool.SEED) == 5
        assert origins.count(CandidatePool.CONTEXT) == 5
        context_batches = [b for b in batches if b.candidates[0].origin_pool == CandidatePool.CONTEXT]
        assert all(len(b.titles) == 2 for b in context_batches)

    def test_collapse_by_artist_keeps_first_appearance(self):
        pool = [
            Candidate(artist_name="Daft Punk", track_title="One More Time", origin_pool=CandidatePool.CONTEXT),
            Candidate(artist_name="Justice", track_title="D.A.N.C.E.", origin_pool=CandidatePool.CONTEXT),
            Candidate(artist_name="daft punk", track_title="Aerodynamic", origin_pool=CandidatePool.CONTEXT),
        ]

        assert [c.track_title for c in collapse_by_artist(pool)] == ["One More Time", "D.A.N.C.E."]

    def test_context_artist_without_title_is_expanded(self):
        similarity = FakeSimilarity(top_tracks={"Justice": ["Genesis"]})
        context = FakeContext([{"artist": "Justice", "title": "", "score": 0.5}])
        strategy = ContextDiscoveryStrategy(similarity, context, DiscoveryMode.ACTIVITY)
        config = RunConfig(discovery_mode=DiscoveryMode.ACTIVITY, context_value="workout", blend_ratio=0.0)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd"), config))

        assert batch_summary(batches) == [("Justice", ["Genesis"])]
        assert context.requests[0]["kind"] == "activity"

    def test_context_failure_leaves_seed_pool(self):
        similarity = FakeSimilarity(
            similar_artists={"Pink Floyd": ["Yes"]},
            top_tracks={"Yes": ["Roundabout"]},
        )
        context = FakeContext(fail=ProviderErrorKind.NETWORK)
        strategy = ContextDiscoveryStrategy(similarity, context, DiscoveryMode.MOOD)

        batches = list(strategy.discover_batches(seeds_of("Pink Floyd"), self.mood_config()))

        assert [b.artist_name for b in batches] == ["Yes"]

    def test_configured_genre_hint_wins(self):
        strategy = ContextDiscoveryStrategy(FakeSimilarity(), FakeContext(), DiscoveryMode.MOOD)
        seeds = track_seeds(("Pink Floyd", "Time"), genre="Rock")

        assert strategy.genre_hints(seeds, self.mood_config(genre_hint=("electronic",))) == ["electronic"]
        assert strategy.genre_hints(seeds, self.mood_config()) == ["rock"]

    def test_blend_target_scales_with_seeds(self):
        strategy = ContextDiscoveryStrategy(FakeSimilarity(), FakeContext(), DiscoveryMode.MOOD)

        assert strategy.blend_target(seeds_of("A", "B"), self.mood_config(similar_limit=3)) == 6
        assert strategy.blend_target([], self.mood_config(similar_limit=3)) == 3

    def test_rejects_non_context_mode(self):
        with pytest.raises(ValueError):
            ContextDiscoveryStrategy(FakeSimilarity(), FakeContext(), DiscoveryMode.ARTIST)


class TestStrategyFactory:
    @pytest.mark.parametrize("mode,cls", [
        (DiscoveryMode.ARTIST, ArtistDiscoveryStrategy),
        ("track", TrackDiscoveryStrategy),
        ("genre", GenreDiscoveryStrategy),
    ])
    def test_similarity_modes(self, mode, cls):
        assert isinstance(create_strategy(mode, FakeSimilarity()), cls)

    def test_context_modes(self):
        strategy = create_strategy("activity", FakeSimilarity(), FakeContext())
        assert isinstance(strategy, ContextDiscoveryStrategy)
        assert strategy.mode == DiscoveryMode.ACTIVITY

    def test_context_mode_needs_adapter(self):
        with pytest.raises(ValueError):
            create_strategy(DiscoveryMode.MOOD, FakeSimilarity())

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="No discovery strategy"):
            create_strategy("bogus", FakeSimilarity())

    def test_supported_modes(self):
        assert set(get_supported_modes()) == {"artist", "track", "genre", "mood", "activity"}
