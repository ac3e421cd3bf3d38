import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.reaction_model import ReactionType
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.services import comments, novels, reactions, statistics
from nine_worlds.services.permissions import AuthorizationError


@pytest.fixture
async def novel(db, author):
    return await novels.create_novel(db, author.id, "Frost Giants", "Cold")


@pytest.fixture
async def chapter(db, author, novel):
    return await novels.create_chapter(db, author.id, novel.id, "Jotunheim", "Snow")


async def test_author_creates_chapter_reader_likes_twice(db, reader, novel, chapter):
    target = Target.chapter(chapter.id)

    first = await reactions.toggle_reaction(db, reader.id, target, ReactionType.LIKE)
    assert first.reacted and first.count == 1
    assert await reactions.has_user_reacted(db, reader.id, target, ReactionType.LIKE)

    second = await reactions.toggle_reaction(db, reader.id, target, ReactionType.LIKE)
    assert not second.reacted and second.count == 0

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_reactions == 0
    assert stats.total_chapters == 1


async def test_reaction_types_are_independent(db, reader, novel):
    target = Target.novel(novel.id)
    await reactions.toggle_reaction(db, reader.id, target, ReactionType.LIKE)
    await reactions.toggle_reaction(db, reader.id, target, ReactionType.LOVE)

    assert await reactions.get_reaction_count(db, target) == 2
    assert await reactions.get_reaction_count(db, target, ReactionType.LOVE) == 1
    assert (await statistics.get_novel_statistics(db, novel.id)).total_reactions == 2


async def test_reacting_to_missing_target_returns_none(db, reader):
    assert await reactions.toggle_reaction(db, reader.id, Target.chapter(999), ReactionType.LIKE) is None


async def test_comment_reply_and_listing(db, reader, author, novel, chapter):
    target = Target.chapter(chapter.id)
    top = await comments.create_comment(db, reader.id, target, "Brr")
    reply = await comments.create_comment(db, author.id, target, "Wear a coat", parent_comment_id=top.id)

    assert [c.id for c in await comments.get_comments_for(db, target)] == [top.id]
    assert [c.id for c in await comments.get_comment_replies(db, top.id)] == [reply.id]
    assert (await statistics.get_novel_statistics(db, novel.id)).total_comments == 2


async def test_reply_must_share_the_parent_target(db, reader, novel, chapter):
    on_chapter = await comments.create_comment(db, reader.id, Target.chapter(chapter.id), "here")
    assert await comments.create_comment(
        db, reader.id, Target.novel(novel.id), "there", parent_comment_id=on_chapter.id
    ) is None


async def test_cannot_comment_on_a_comment_or_deleted_chapter(db, reader, author, chapter):
    top = await comments.create_comment(db, reader.id, Target.chapter(chapter.id), "hi")
    assert await comments.create_comment(db, reader.id, Target.comment(top.id), "nested") is None

    await novels.delete_chapter(db, author.id, chapter.id)
    assert await comments.create_comment(db, reader.id, Target.chapter(chapter.id), "late") is None


async def test_delete_cascades_one_level(db, reader, author, novel):
    elsewhere = await novels.create_novel(db, author.id, "Fire Giants", "Hot")
    bystander = await comments.create_comment(db, reader.id, Target.novel(elsewhere.id), "warm")
    target = Target.novel(novel.id)
    top = await comments.create_comment(db, reader.id, target, "a")
    reply = await comments.create_comment(db, reader.id, target, "b", parent_comment_id=top.id)
    nested = await comments.create_comment(db, reader.id, target, "c", parent_comment_id=reply.id)
    other = await comments.create_comment(db, reader.id, target, "d")

    assert await comments.delete_comment(db, reader.id, top.id)

    for c in (top, reply, nested, other, bystander):
        await db.refresh(c)
    assert top.is_deleted and reply.is_deleted
    assert not nested.is_deleted
    assert not other.is_deleted
    assert not bystander.is_deleted

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_comments == 2
    assert (await statistics.get_novel_statistics(db, elsewhere.id)).total_comments == 1


async def test_comment_edit_rights(db, reader, moderator, make_user, novel):
    comment = await comments.create_comment(db, reader.id, Target.novel(novel.id), "typo")
    stranger = await make_user()

    with pytest.raises(AuthorizationError):
        await comments.update_comment(db, stranger.id, comment.id, "hijack")

    edited = await comments.update_comment(db, reader.id, comment.id, "fixed")
    assert edited.content == "fixed"

    assert await comments.delete_comment(db, moderator.id, comment.id)
    assert await comments.get_comment_by_id(db, comment.id) is None


async def _failing_delta(*args, **kwargs):
    raise SQLAlchemyError("counter update failed")


async def _comment_count(db, novel_id):
    return (
        await db.execute(
            select(func.count(Comment.id)).where(
                Comment.target_type == TargetKind.NOVEL, Comment.target_id == novel_id
            )
        )
    ).scalar_one()


async def test_failed_counter_update_rolls_back_the_comment(db, reader, novel, monkeypatch):
    novel_id, reader_id = novel.id, reader.id
    monkeypatch.setattr(comments, "apply_delta", _failing_delta)

    assert await comments.create_comment(db, reader_id, Target.novel(novel_id), "lost") is None

    assert await _comment_count(db, novel_id) == 0
    assert (await statistics.get_novel_statistics(db, novel_id)).total_comments == 0


async def test_failed_counter_update_rolls_back_the_reaction(db, reader, novel, monkeypatch):
    novel_id, reader_id = novel.id, reader.id
    target = Target.novel(novel_id)
    monkeypatch.setattr(reactions, "apply_delta", _failing_delta)

    assert await reactions.toggle_reaction(db, reader_id, target, ReactionType.LIKE) is None
    assert await reactions.get_reaction_count(db, target) == 0
    assert (await statistics.get_novel_statistics(db, novel_id)).total_reactions == 0

    monkeypatch.undo()
    state = await reactions.toggle_reaction(db, reader_id, target, ReactionType.LIKE)
    assert state.reacted and state.count == 1


async def test_chapter_of_deleted_novel_takes_no_engagement(db, reader, author, novel, chapter):
    target = Target.chapter(chapter.id)
    assert await novels.delete_novel(db, author.id, novel.id)

    assert await comments.create_comment(db, reader.id, target, "anyone here?") is None
    assert await reactions.toggle_reaction(db, reader.id, target, ReactionType.LIKE) is None

    stats = await statistics.get_novel_statistics(db, novel.id)
    assert stats.total_comments == 0
    assert stats.total_reactions == 0
