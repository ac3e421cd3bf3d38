from nine_worlds.models.reaction_model import ReactionType
from nine_worlds.models.target import Target
from nine_worlds.services import comments, novels, reactions, search


async def test_title_prefix_ranks_first(db, author):
    by_summary = await novels.create_novel(db, author.id, "Quiet Hall", "A story about Ravens")
    inside = await novels.create_novel(db, author.id, "Of Ravens", "Birds")
    prefix = await novels.create_novel(db, author.id, "Ravenfall", "Birds again")
    await novels.create_novel(db, author.id, "Unrelated", "Nothing")

    found = await search.search_novels(db, "raven")
    assert [n.id for n in found] == [prefix.id, inside.id, by_summary.id]
    assert await search.search_novels(db, "   ") == []


async def test_like_wildcards_are_literal(db, author):
    await novels.create_novel(db, author.id, "Plain", "nothing special")
    assert await search.search_novels(db, "%") == []


async def test_deleted_novels_never_appear(db, author):
    novel = await novels.create_novel(db, author.id, "Gone", "soon")
    await novels.delete_novel(db, author.id, novel.id)
    assert await search.search_novels(db, "Gone") == []
    assert await search.get_top_novels_by_views(db) == []


async def test_search_by_author_and_category(db, author, moderator):
    category = await novels.create_category(db, moderator.id, "Myth")
    novel = await novels.create_novel(db, author.id, "Odin", "One eye", category_ids=[category.id])
    await novels.create_novel(db, author.id, "Thor", "Hammer")

    assert [n.id for n in await search.search_by_category(db, category.id)] == [novel.id]
    assert len(await search.search_by_author(db, "auth")) == 2
    assert await search.search_by_author(db, "nobody") == []


async def test_related_novels_share_categories(db, author, moderator):
    myth = await novels.create_category(db, moderator.id, "Myth")
    war = await novels.create_category(db, moderator.id, "War")
    base = await novels.create_novel(db, author.id, "Base", "...", category_ids=[myth.id, war.id])
    close = await novels.create_novel(db, author.id, "Close", "...", category_ids=[myth.id, war.id])
    loose = await novels.create_novel(db, author.id, "Loose", "...", category_ids=[war.id])
    await novels.create_novel(db, author.id, "Alone", "...")

    related = await search.get_related_novels(db, base.id)
    assert [n.id for n in related] == [close.id, loose.id]


async def test_rankings(db, author, translator, reader):
    quiet = await novels.create_novel(db, author.id, "Quiet", "...")
    loud = await novels.create_novel(db, author.id, "Loud", "...", translator_id=translator.id)
    await novels.increment_novel_views(db, loud.id)
    await novels.increment_novel_views(db, loud.id)
    await comments.create_comment(db, reader.id, Target.novel(quiet.id), "hello")
    await reactions.toggle_reaction(db, reader.id, Target.novel(quiet.id), ReactionType.LIKE)

    assert [n.id for n in await search.get_top_novels_by_views(db)][0] == loud.id
    assert [n.id for n in await search.get_top_novels_by_comments(db)][0] == quiet.id
    assert [n.id for n in await search.get_top_novels_by_reactions(db)][0] == quiet.id

    (top_author,) = await search.get_top_authors(db)
    assert top_author["id"] == author.id
    assert top_author["novel_count"] == 2
    assert top_author["total_views"] == 2

    (top_translator,) = await search.get_top_translators(db)
    assert top_translator["id"] == translator.id

    top_users = await search.get_top_users(db)
    assert [u["id"] for u in top_users] == [reader.id]
    assert top_users[0]["comments"] == 1
    assert top_users[0]["reactions"] == 1


async def test_featured_novels(db, author, admin):
    novel = await novels.create_novel(db, author.id, "Shiny", "...")
    await novels.create_novel(db, author.id, "Dull", "...")
    await novels.set_featured(db, admin.id, novel.id, True)
    assert [n.id for n in await search.get_featured_novels(db)] == [novel.id]
