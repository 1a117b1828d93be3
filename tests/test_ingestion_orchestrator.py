"""Tests for the ingestion orchestrator module."""

import logging
import threading

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pokedex.core.enums import IngestionState
from pokedex.core.schema import PokemonRecord, RegionMembership
from pokedex.db.engine import create_db_engine
from pokedex.db.repositories import PokemonRepository
from pokedex.ingestion.errors import IngestionAbortedError
from pokedex.ingestion.fetcher import RetryableFetcher
from pokedex.ingestion.normalizer import DocumentNormalizer
from pokedex.ingestion.orchestrator import (
    IngestionOptions,
    IngestionOrchestrator,
    RunCounters,
    fix_regions,
    sync_cries,
)
from pokedex.ingestion.regions import RegionResolver
from pokedex.ingestion.upsert import IdempotentUpserter

BASE_URL = "https://pokeapi.test/api/v2"
BASE_DELAY = 0.5

CATALOG = [
    (1, "bulbasaur", "Bulbizarre", ["grass", "poison"]),
    (4, "charmander", "Salamèche", ["fire"]),
    (7, "squirtle", "Carapuce", ["water"]),
]


class FakePokeAPI:
    """
    In-memory PokeAPI.

    detail_failures maps a pokemon name to a list of statuses returned
    before the real payload (a trailing status repeats forever when
    sticky is set).
    """

    def __init__(self, pokemon_payload, species_payload, detail_failures=None, listing_status=200, sticky=()):
        self.pokemon_payload = pokemon_payload
        self.species_payload = species_payload
        self.detail_failures = {k: list(v) for k, v in (detail_failures or {}).items()}
        self.listing_status = listing_status
        self.sticky = set(sticky)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.rstrip("/")

        if path == "/api/v2/pokemon":
            if self.listing_status != 200:
                return httpx.Response(self.listing_status, text="listing down")
            results = [{"name": name, "url": f"{BASE_URL}/pokemon/{name}/"} for _, name, _, _ in CATALOG]
            return httpx.Response(200, json={"count": len(results), "results": results})

        for dex, name, french, types in CATALOG:
            if path == f"/api/v2/pokemon/{name}":
                failures = self.detail_failures.get(name)
                if failures:
                    status = failures[0] if name in self.sticky else failures.pop(0)
                    return httpx.Response(status, text="error")
                return httpx.Response(200, json=self.pokemon_payload(pokeapi_id=dex, name=name, types=types))
            if path == f"/api/v2/pokemon-species/{name}":
                return httpx.Response(200, json=self.species_payload(dex_number=dex, name=name, french_name=french))

        return httpx.Response(404, text="Not Found")


async def no_sleep(delay: float) -> None:
    return None


class ThreadRecordingUpserter(IdempotentUpserter):
    """Remembers which thread ran each upsert."""

    def __init__(self, session_factory) -> None:
        super().__init__(session_factory)
        self.threads: list[int] = []

    def upsert(self, record):
        self.threads.append(threading.get_ident())
        return super().upsert(record)


def make_orchestrator(
    api: FakePokeAPI, session_factory, progress_interval: int = 25, lines=None, sleep=no_sleep, upserter=None
):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    fetcher = RetryableFetcher(client=client, max_retries=3, base_delay=BASE_DELAY, sleep=sleep)
    orchestrator = IngestionOrchestrator(
        fetcher=fetcher,
        normalizer=DocumentNormalizer(),
        upserter=upserter or IdempotentUpserter(session_factory),
        session_factory=session_factory,
        catalog_base_url=BASE_URL,
        progress_interval=progress_interval,
        on_progress=lines.append if lines is not None else None,
    )
    return orchestrator, client


class TestIngestionOptions:
    def test_defaults(self) -> None:
        options = IngestionOptions()
        assert options.limit == 1350
        assert options.offset == 0
        assert options.concurrency == 8
        assert options.retries == 3
        assert options.reset is False

    def test_clamped(self) -> None:
        options = IngestionOptions(limit=-1, concurrency=0, retries=-2)
        assert options.limit == 0
        assert options.concurrency == 1
        assert options.retries == 0


class TestRunCounters:
    @pytest.mark.asyncio
    async def test_claims_every_index_once(self) -> None:
        counters = RunCounters(total=3)
        claimed = [await counters.claim() for _ in range(5)]
        assert claimed == [0, 1, 2, None, None]

    @pytest.mark.asyncio
    async def test_record_snapshot(self) -> None:
        counters = RunCounters(total=3)
        await counters.record(None)
        snapshot = await counters.record(None)
        assert snapshot.scanned == 2
        assert snapshot.failed == 2


class TestIngestionOrchestrator:
    """Tests for IngestionOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_full_run_with_transient_failures(self, session_factory, pokemon_payload, species_payload) -> None:
        """Three entries, one answering 503 twice: all three are created after two backoffs."""
        delays: list[float] = []

        async def record_sleep(delay: float) -> None:
            delays.append(delay)

        api = FakePokeAPI(pokemon_payload, species_payload, detail_failures={"charmander": [503, 503]})
        orchestrator, client = make_orchestrator(api, session_factory, sleep=record_sleep)

        async with client:
            summary = await orchestrator.run(IngestionOptions(limit=3, concurrency=2))

        assert summary.scanned == 3
        assert summary.created == 3
        assert summary.updated == 0
        assert summary.failed == 0
        assert delays == [BASE_DELAY, 2 * BASE_DELAY]
        assert orchestrator.state == IngestionState.COMPLETED

        with session_factory() as session:
            repo = PokemonRepository(session)
            assert repo.count() == 3
            charmander = repo.get_by_slug("charmander")
        assert charmander.name == "Salamèche"
        assert charmander.regions[0].region_name == "Kanto"

    @pytest.mark.asyncio
    async def test_upserts_run_off_the_event_loop(
        self, session_factory, pokemon_payload, species_payload
    ) -> None:
        """Database writes happen in worker threads so the other workers keep fetching."""
        loop_thread = threading.get_ident()
        upserter = ThreadRecordingUpserter(session_factory)
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, session_factory, upserter=upserter)

        async with client:
            summary = await orchestrator.run(IngestionOptions(limit=3, concurrency=3))

        assert summary.created == 3
        assert len(upserter.threads) == 3
        assert loop_thread not in upserter.threads

    @pytest.mark.asyncio
    async def test_listing_request(self, session_factory, pokemon_payload, species_payload) -> None:
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, session_factory)

        async with client:
            await orchestrator.run(IngestionOptions(limit=3, offset=10))

        listing = api.requests[0]
        assert listing.url.path == "/api/v2/pokemon"
        assert listing.url.params["offset"] == "10"
        assert listing.url.params["limit"] == "3"

    @pytest.mark.asyncio
    async def test_rerun_updates(self, session_factory, pokemon_payload, species_payload) -> None:
        """A second run over the same catalog only updates."""
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, session_factory)

        async with client:
            await orchestrator.run(IngestionOptions(limit=3))
            summary = await orchestrator.run(IngestionOptions(limit=3))

        assert summary.created == 0
        assert summary.updated == 3
        with session_factory() as session:
            assert PokemonRepository(session).count() == 3

    @pytest.mark.asyncio
    async def test_item_failure_is_isolated(
        self, session_factory, pokemon_payload, species_payload, caplog
    ) -> None:
        """A permanently failing entry is counted; the others still land."""
        api = FakePokeAPI(pokemon_payload, species_payload, detail_failures={"squirtle": [404]})
        orchestrator, client = make_orchestrator(api, session_factory)

        with caplog.at_level(logging.ERROR, logger="pokedex.ingestion.orchestrator"):
            async with client:
                summary = await orchestrator.run(IngestionOptions(limit=3, concurrency=3))

        assert summary.scanned == 3
        assert summary.failed == 1
        assert summary.created == 2
        assert any("FAIL" in r.message and "squirtle" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_item_failures(
        self, session_factory, pokemon_payload, species_payload
    ) -> None:
        api = FakePokeAPI(
            pokemon_payload, species_payload, detail_failures={"bulbasaur": [503]}, sticky={"bulbasaur"}
        )
        orchestrator, client = make_orchestrator(api, session_factory)

        async with client:
            summary = await orchestrator.run(IngestionOptions(limit=3, retries=2))

        assert summary.failed == 1
        assert summary.created == 2
        detail_calls = [r for r in api.requests if r.url.path.rstrip("/") == "/api/v2/pokemon/bulbasaur"]
        assert len(detail_calls) == 3

    @pytest.mark.asyncio
    async def test_progress_lines(self, session_factory, pokemon_payload, species_payload) -> None:
        lines: list[str] = []
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, session_factory, progress_interval=2, lines=lines)

        async with client:
            await orchestrator.run(IngestionOptions(limit=3, concurrency=1))

        assert lines[0].startswith("Progress 2/3")
        assert lines[1].startswith("Progress 3/3")
        assert "created:3" in lines[1]
        assert lines[-1].startswith("Import finished. Total:3")

    @pytest.mark.asyncio
    async def test_reset(self, session_factory, pokemon_payload, species_payload) -> None:
        """Reset clears the table before the import."""
        with session_factory() as session:
            PokemonRepository(session).create(
                PokemonRecord(name="Stale", slug="stale", img_url="https://img.test/x.png", types=["NORMAL"])
            )
            session.commit()

        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, session_factory)

        async with client:
            summary = await orchestrator.run(IngestionOptions(limit=3, reset=True))

        assert summary.created == 3
        with session_factory() as session:
            repo = PokemonRepository(session)
            assert repo.count() == 3
            assert repo.get_by_slug("stale") is None

    @pytest.mark.asyncio
    async def test_listing_failure_aborts(self, session_factory, pokemon_payload, species_payload) -> None:
        api = FakePokeAPI(pokemon_payload, species_payload, listing_status=500)
        orchestrator, client = make_orchestrator(api, session_factory)

        async with client:
            with pytest.raises(IngestionAbortedError):
                await orchestrator.run(IngestionOptions(limit=3, retries=1))

        assert orchestrator.state == IngestionState.ABORTED
        assert all(r.url.path == "/api/v2/pokemon" for r in api.requests)

    @pytest.mark.asyncio
    async def test_unreachable_database_aborts(self, tmp_path, pokemon_payload, species_payload) -> None:
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'db.sqlite'}")
        broken_factory = sessionmaker(bind=engine)
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, broken_factory)

        async with client:
            with pytest.raises(IngestionAbortedError, match="Database"):
                await orchestrator.run(IngestionOptions(limit=3))

        assert api.requests == []
        engine.dispose()

    @pytest.mark.asyncio
    async def test_missing_table_aborts(self, tmp_path, pokemon_payload, species_payload) -> None:
        engine = create_db_engine(tmp_path / "empty.db")
        api = FakePokeAPI(pokemon_payload, species_payload)
        orchestrator, client = make_orchestrator(api, sessionmaker(bind=engine))

        async with client:
            with pytest.raises(IngestionAbortedError, match="init-db"):
                await orchestrator.run(IngestionOptions(limit=3))

        assert orchestrator.state == IngestionState.ABORTED
        assert api.requests == []
        engine.dispose()


class StubCryResolver:
    def __init__(self, answers: dict[str, str]) -> None:
        self.answers = answers
        self.calls: list[str] = []

    async def resolve(self, name: str) -> str:
        self.calls.append(name)
        return self.answers.get(name, "")


def store(session_factory, *records: PokemonRecord) -> None:
    with session_factory() as session:
        repo = PokemonRepository(session)
        for record in records:
            repo.create(record)
        session.commit()


def make_record(name: str, cry_url: str = "", regions=None) -> PokemonRecord:
    return PokemonRecord(
        name=name,
        slug=name.lower(),
        img_url=f"https://img.test/{name}.png",
        types=["NORMAL"],
        cry_url=cry_url,
        regions=regions or [],
    )


class TestSyncCries:
    """Tests for the cry sync pass."""

    @pytest.mark.asyncio
    async def test_fills_missing_cries(self, session_factory) -> None:
        store(
            session_factory,
            make_record("Pikachu"),
            make_record("Evoli"),
            make_record("Mew", cry_url="https://old.test/mew.ogg"),
        )
        resolver = StubCryResolver({"Pikachu": "https://wiki.test/pikachu.ogg"})

        summary = await sync_cries(session_factory, resolver)

        assert summary.scanned == 2
        assert summary.updated == 1
        assert summary.missing == 1
        assert resolver.calls == ["Evoli", "Pikachu"]
        with session_factory() as session:
            repo = PokemonRepository(session)
            assert repo.get_by_name("Pikachu").cry_url == "https://wiki.test/pikachu.ogg"
            assert repo.get_by_name("Mew").cry_url == "https://old.test/mew.ogg"

    @pytest.mark.asyncio
    async def test_force_revisits_everything(self, session_factory) -> None:
        store(
            session_factory,
            make_record("Mew", cry_url="https://old.test/mew.ogg"),
            make_record("Mewtwo", cry_url="https://same.test/mewtwo.ogg"),
        )
        resolver = StubCryResolver(
            {"Mew": "https://wiki.test/mew.ogg", "Mewtwo": "https://same.test/mewtwo.ogg"}
        )

        summary = await sync_cries(session_factory, resolver, force=True)

        assert summary.scanned == 2
        assert summary.updated == 1
        assert summary.missing == 0

    @pytest.mark.asyncio
    async def test_limit(self, session_factory) -> None:
        store(session_factory, make_record("A"), make_record("B"), make_record("C"))
        resolver = StubCryResolver({})

        summary = await sync_cries(session_factory, resolver, limit=2)

        assert summary.scanned == 2
        assert resolver.calls == ["A", "B"]


class TestFixRegions:
    """Tests for the region repair pass."""

    def test_repairs_labels_and_images(self, session_factory) -> None:
        kanto_url = RegionResolver.REGION_IMAGE_URLS["KANTO"]
        store(
            session_factory,
            make_record("Pikachu", regions=[RegionMembership(region_name="National", region_pokedex_number=25)]),
            make_record(
                "Zorua",
                regions=[
                    RegionMembership(
                        region_name="Unova",
                        region_pokedex_number=570,
                        region_image_url="https://custom.test/map.png",
                    )
                ],
            ),
            make_record(
                "Bulbizarre",
                regions=[
                    RegionMembership(region_name="Kanto", region_pokedex_number=1, region_image_url=kanto_url)
                ],
            ),
            make_record("Nobody"),
        )

        summary = fix_regions(session_factory)

        assert summary.scanned == 3
        assert summary.updated_records == 2
        assert summary.updated_regions == 2

        with session_factory() as session:
            repo = PokemonRepository(session)
            pikachu = repo.get_by_name("Pikachu").regions[0]
            zorua = repo.get_by_name("Zorua").regions[0]
        assert pikachu.region_name == "Kanto"
        assert pikachu.region_image_url == kanto_url
        assert zorua.region_name == "Unys"
        assert zorua.region_image_url == "https://custom.test/map.png"

    def test_unresolvable_label_kept(self, session_factory) -> None:
        store(
            session_factory,
            make_record("Ghost", regions=[RegionMembership(region_name="Atlantis", region_pokedex_number=0)]),
        )

        summary = fix_regions(session_factory)

        assert summary.updated_records == 0
        with session_factory() as session:
            assert PokemonRepository(session).get_by_name("Ghost").regions[0].region_name == "Atlantis"
