import uuid

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from artistphere.artist import ArtistStore, IdentityHint
from artistphere.db.models import Base
from artistphere.models.artists import PLATFORMS
from artistphere.models.errors import (
    DuplicateName,
    MissingImage,
    NotFound,
    StorageUnavailable,
    ValidationError,
)


def artist_fields(name: str, **overrides) -> dict:
    fields = {
        "name": name,
        "imageRef": f"https://img.example.com/{name}.png",
        "bio": "",
        "paragraph1": "",
        "paragraph2": "",
        "paragraph3": "",
        "hitSong": "",
        "charity": "",
        "aboutCharity": "",
        "platformLinks": {p: "" for p in PLATFORMS},
    }
    fields.update(overrides)
    return fields


@pytest_asyncio.fixture
async def store(db_session, clock):
    return ArtistStore(db_session, clock)


@pytest.mark.asyncio
async def test_create_then_get_returns_same_fields(store: ArtistStore):
    created = await store.create(artist_fields("Aria", bio="Singer", hitSong="Echoes"))

    assert isinstance(created.id, uuid.UUID)
    assert created.createdAt == created.updatedAt

    fetched = await store.get(created.id)
    assert fetched.id == created.id
    assert fetched.name == "Aria"
    assert fetched.imageRef == "https://img.example.com/Aria.png"
    assert fetched.bio == "Singer"
    assert fetched.hitSong == "Echoes"


@pytest.mark.asyncio
async def test_create_assigns_distinct_ids(store: ArtistStore):
    first = await store.create(artist_fields("One"))
    second = await store.create(artist_fields("Two"))
    assert first.id != second.id


@pytest.mark.asyncio
async def test_create_duplicate_name_fails_and_adds_nothing(store: ArtistStore):
    await store.create(artist_fields("Aria"))

    with pytest.raises(DuplicateName) as exc:
        await store.create(artist_fields("Aria", imageRef="https://x/z.png"))
    assert exc.value.name == "Aria"

    artists = await store.list_artists(1, 50)
    assert [a.name for a in artists] == ["Aria"]
    assert artists[0].imageRef == "https://img.example.com/Aria.png"


@pytest.mark.asyncio
async def test_name_uniqueness_is_case_sensitive(store: ArtistStore):
    await store.create(artist_fields("aria"))
    await store.create(artist_fields("Aria"))

    assert len(await store.list_artists(1, 10)) == 2


@pytest.mark.asyncio
async def test_create_requires_image(store: ArtistStore):
    with pytest.raises(MissingImage):
        await store.create(artist_fields("NoImage", imageRef=""))


@pytest.mark.asyncio
async def test_create_rejects_unknown_fields(store: ArtistStore):
    with pytest.raises(ValidationError) as exc:
        await store.create(artist_fields("Aria", genre="pop"))
    assert exc.value.field == "genre"


@pytest.mark.asyncio
async def test_get_missing_raises_not_found(store: ArtistStore):
    with pytest.raises(NotFound):
        await store.get(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_only_touches_supplied_fields(store: ArtistStore):
    artist = await store.create(artist_fields("Aria", bio="Singer", charity="Music Aid"))
    created_at = artist.createdAt

    updated = await store.update(artist.id, {"hitSong": "New Single"})

    assert updated.hitSong == "New Single"
    assert updated.name == "Aria"
    assert updated.imageRef == "https://img.example.com/Aria.png"
    assert updated.bio == "Singer"
    assert updated.charity == "Music Aid"
    assert updated.createdAt == created_at
    assert updated.updatedAt > created_at


@pytest.mark.asyncio
async def test_update_merges_platform_links(store: ArtistStore):
    artist = await store.create(
        artist_fields("Aria", platformLinks={p: "" for p in PLATFORMS} | {"spotify": "https://open.spotify.com/a"})
    )

    updated = await store.update(artist.id, {"platformLinks": {"twitch": "https://twitch.tv/aria"}})

    assert updated.platformLinks["spotify"] == "https://open.spotify.com/a"
    assert updated.platformLinks["twitch"] == "https://twitch.tv/aria"
    assert set(updated.platformLinks) == set(PLATFORMS)


@pytest.mark.asyncio
async def test_update_cannot_empty_required_fields(store: ArtistStore):
    artist = await store.create(artist_fields("Aria"))

    with pytest.raises(ValidationError) as exc:
        await store.update(artist.id, {"imageRef": ""})
    assert exc.value.field == "img"

    with pytest.raises(ValidationError) as exc:
        await store.update(artist.id, {"name": ""})
    assert exc.value.field == "name"

    fetched = await store.get(artist.id)
    assert fetched.name == "Aria"


@pytest.mark.asyncio
async def test_update_to_taken_name_raises_duplicate(store: ArtistStore):
    await store.create(artist_fields("Aria"))
    other = await store.create(artist_fields("Bex"))

    with pytest.raises(DuplicateName):
        await store.update(other.id, {"name": "Aria"})


@pytest.mark.asyncio
async def test_update_missing_raises_not_found(store: ArtistStore):
    with pytest.raises(NotFound):
        await store.update(uuid.uuid4(), {"bio": "x"})


@pytest.mark.asyncio
async def test_upsert_by_name_creates_then_updates(store: ArtistStore):
    fields = artist_fields("Aria", bio="Singer")

    first, created = await store.upsert(IdentityHint(name="Aria"), fields)
    assert created is True

    second, created = await store.upsert(IdentityHint(name="Aria"), fields)
    assert created is False
    assert second.id == first.id
    assert second.bio == "Singer"

    assert len(await store.list_artists(1, 10)) == 1


@pytest.mark.asyncio
async def test_upsert_by_id_updates_existing(store: ArtistStore):
    artist = await store.create(artist_fields("Aria"))

    updated, created = await store.upsert(
        IdentityHint(artist_id=artist.id), {"name": "Aria Rose", "hitSong": "Bloom"}
    )

    assert created is False
    assert updated.id == artist.id
    assert updated.name == "Aria Rose"
    assert updated.hitSong == "Bloom"


@pytest.mark.asyncio
async def test_upsert_by_unknown_id_creates_with_fresh_id(store: ArtistStore):
    wanted = uuid.uuid4()

    artist, created = await store.upsert(IdentityHint(artist_id=wanted), artist_fields("Aria"))

    assert created is True
    assert artist.id != wanted


@pytest.mark.asyncio
async def test_upsert_by_unknown_id_twice_updates_the_first(store: ArtistStore):
    wanted = uuid.uuid4()

    first, created = await store.upsert(IdentityHint(artist_id=wanted), artist_fields("Aria"))
    assert created is True

    second, created = await store.upsert(
        IdentityHint(artist_id=wanted), artist_fields("Aria", hitSong="Echoes")
    )

    assert created is False
    assert second.id == first.id
    assert second.hitSong == "Echoes"
    assert len(await store.list_artists(1, 10)) == 1


@pytest.mark.asyncio
async def test_upsert_by_name_recovers_from_lost_insert_race(store: ArtistStore, monkeypatch):
    existing = await store.create(artist_fields("Aria"))

    # Simulate the record appearing between the lookup and the insert.
    calls = 0
    original_find = store.find

    async def racing_find(hint):
        nonlocal calls
        calls += 1
        if calls == 1:
            return None
        return await original_find(hint)

    monkeypatch.setattr(store, "find", racing_find)

    artist, created = await store.upsert(
        IdentityHint(name="Aria"), artist_fields("Aria", bio="From the loser")
    )

    assert created is False
    assert artist.id == existing.id
    assert artist.bio == "From the loser"


def test_identity_hint_requires_id_or_name():
    with pytest.raises(ValidationError):
        IdentityHint()


@pytest.mark.asyncio
async def test_delete_is_terminal(store: ArtistStore):
    artist = await store.create(artist_fields("Aria"))

    deleted = await store.delete(artist.id)
    assert deleted.id == artist.id
    assert deleted.name == "Aria"

    with pytest.raises(NotFound):
        await store.get(artist.id)
    with pytest.raises(NotFound):
        await store.delete(artist.id)


@pytest.mark.asyncio
async def test_list_pagination_newest_first(store: ArtistStore):
    for i in range(1, 26):
        await store.create(artist_fields(f"Artist {i:02d}"))

    page_one = await store.list_artists(page=1, page_size=10)
    page_two = await store.list_artists(page=2, page_size=10)
    page_three = await store.list_artists(page=3, page_size=10)

    # newest first: 25..16, 15..6, 5..1
    assert [a.name for a in page_one] == [f"Artist {i:02d}" for i in range(25, 15, -1)]
    assert [a.name for a in page_two] == [f"Artist {i:02d}" for i in range(15, 5, -1)]
    assert len(page_three) == 5


@pytest.mark.asyncio
async def test_list_past_the_end_is_empty(store: ArtistStore):
    await store.create(artist_fields("Aria"))

    assert await store.list_artists(page=5, page_size=10) == []


@pytest.mark.asyncio
async def test_list_rejects_bad_paging(store: ArtistStore):
    with pytest.raises(ValidationError):
        await store.list_artists(page=0, page_size=10)
    with pytest.raises(ValidationError):
        await store.list_artists(page=1, page_size=0)


@pytest.mark.asyncio
async def test_bulk_create_skips_duplicates(store: ArtistStore):
    await store.create(artist_fields("Aria"))

    created, skipped = await store.bulk_create(
        [artist_fields("Bex"), artist_fields("Aria"), artist_fields("Cyd")]
    )

    assert [a.name for a in created] == ["Bex", "Cyd"]
    assert skipped == ["Aria"]
    # rows committed before the duplicate stay readable without another await
    assert created[0].imageRef == "https://img.example.com/Bex.png"
    assert created[0].createdAt is not None


@pytest.mark.asyncio
async def test_taken_names(store: ArtistStore):
    await store.create(artist_fields("Aria"))
    await store.create(artist_fields("Bex"))

    assert await store.taken_names(["Aria", "Cyd", "Bex"]) == {"Aria", "Bex"}
    assert await store.taken_names([]) == set()


@pytest.mark.asyncio
async def test_uniqueness_enforced_across_sessions(tmp_path, clock):
    """Neither session sees the other's insert before committing; the database still refuses the second."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with sessions() as first_db, sessions() as second_db:
            first = ArtistStore(first_db, clock)
            second = ArtistStore(second_db, clock)

            await first.create(artist_fields("Aria"))
            with pytest.raises(DuplicateName):
                await second.create(artist_fields("Aria"))

            assert len(await first.list_artists(1, 10)) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_connection_errors_become_storage_unavailable(store: ArtistStore, db_session, monkeypatch):
    async def broken_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, ConnectionError("server closed the connection"))

    monkeypatch.setattr(db_session, "get", broken_get)

    with pytest.raises(StorageUnavailable):
        await store.get(uuid.uuid4())
