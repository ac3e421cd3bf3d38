import pytest

from nine_worlds.models.novel_model import NovelStatus, NovelType
from nine_worlds.services import novels, statistics
from nine_worlds.services.permissions import AuthorizationError


@pytest.fixture
async def novel(db, author):
    return await novels.create_novel(db, author.id, "The Ninth Gate", "Nine doors, one key.")


async def test_create_novel_with_statistics_row(db, author, novel):
    assert novel.author_id == author.id
    assert novel.type == NovelType.ORIGINAL
    assert novel.status == NovelStatus.ONGOING

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats is not None
    assert (stats.total_views, stats.total_comments, stats.total_reactions, stats.total_chapters) == (0, 0, 0, 0)


async def test_translated_novel_type(db, author, translator):
    novel = await novels.create_novel(db, author.id, "Borrowed", "From afar", translator_id=translator.id)
    assert novel.type == NovelType.TRANSLATED
    assert [n.id for n in await novels.get_novels_by_translator(db, translator.id)] == [novel.id]


async def test_reader_cannot_create_novel(db, reader):
    with pytest.raises(AuthorizationError):
        await novels.create_novel(db, reader.id, "Nope", "Nope")


async def test_categories_are_attached(db, author, moderator):
    fantasy = await novels.create_category(db, moderator.id, "Fantasy")
    drama = await novels.create_category(db, moderator.id, "Drama")
    novel = await novels.create_novel(db, author.id, "Tagged", "Has tags", category_ids=[fantasy.id, drama.id, fantasy.id])

    assert [c.name for c in await novels.get_novel_categories(db, novel.id)] == ["Drama", "Fantasy"]
    assert [n.id for n in await novels.get_novels_by_category(db, fantasy.id)] == [novel.id]

    await novels.update_novel(db, author.id, novel.id, category_ids=[drama.id])
    assert [c.name for c in await novels.get_novel_categories(db, novel.id)] == ["Drama"]

    await novels.update_novel(db, author.id, novel.id, title="Untagged")
    assert len(await novels.get_novel_categories(db, novel.id)) == 1

    await novels.update_novel(db, author.id, novel.id, category_ids=[])
    assert await novels.get_novel_categories(db, novel.id) == []


async def test_sequential_chapters_are_numbered_from_one(db, author, novel):
    numbers = []
    for i in range(5):
        chapter = await novels.create_chapter(db, author.id, novel.id, f"Chapter {i}", "text")
        numbers.append(chapter.chapter_number)
    assert numbers == [1, 2, 3, 4, 5]


async def test_chapter_numbers_are_never_reused(db, author, novel):
    first = await novels.create_chapter(db, author.id, novel.id, "One", "text")
    second = await novels.create_chapter(db, author.id, novel.id, "Two", "text")
    assert await novels.delete_chapter(db, author.id, second.id)

    third = await novels.create_chapter(db, author.id, novel.id, "Three", "text")
    assert third.chapter_number == 3

    listed = await novels.get_chapters_by_novel_id(db, novel.id)
    assert [c.chapter_number for c in listed] == [first.chapter_number, 3]
    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_chapters == 2


async def test_other_author_cannot_touch_novel(db, novel, make_user):
    stranger = await make_user(2)
    with pytest.raises(AuthorizationError):
        await novels.update_novel(db, stranger.id, novel.id, title="Mine now")
    with pytest.raises(AuthorizationError):
        await novels.create_chapter(db, stranger.id, novel.id, "Intrusion", "text")
    with pytest.raises(AuthorizationError):
        await novels.delete_novel(db, stranger.id, novel.id)


async def test_moderator_can_edit_any_novel(db, moderator, novel):
    updated = await novels.update_novel(db, moderator.id, novel.id, status=NovelStatus.HIATUS)
    assert updated.status == NovelStatus.HIATUS


async def test_soft_deleted_novel_is_hidden(db, author, novel):
    assert await novels.delete_novel(db, author.id, novel.id)
    assert await novels.get_novel_by_id(db, novel.id) is None
    assert await novels.get_latest_novels(db) == []
    assert not await novels.delete_novel(db, author.id, novel.id)
    assert not await novels.increment_novel_views(db, novel.id)


async def test_chapters_go_with_their_novel(db, author, novel):
    chapter = await novels.create_chapter(db, author.id, novel.id, "One", "text")
    assert await novels.delete_novel(db, author.id, novel.id)

    assert await novels.get_chapter_by_id(db, chapter.id) is None
    assert await novels.get_chapters_by_novel_id(db, novel.id) == []
    assert not await novels.increment_chapter_views(db, chapter.id)
    assert await novels.update_chapter(db, author.id, chapter.id, title="Ghost") is None

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_views == 0


async def test_views_feed_statistics(db, author, novel):
    chapter = await novels.create_chapter(db, author.id, novel.id, "One", "text")
    assert await novels.increment_novel_views(db, novel.id)
    assert await novels.increment_novel_views(db, novel.id)
    assert await novels.increment_chapter_views(db, chapter.id)

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_views == 3
    assert [n.id for n in await novels.get_popular_novels(db)] == [novel.id]


async def test_only_admins_feature(db, author, admin, novel):
    with pytest.raises(AuthorizationError):
        await novels.set_featured(db, author.id, novel.id, True)
    featured = await novels.set_featured(db, admin.id, novel.id, True)
    assert featured.is_featured
