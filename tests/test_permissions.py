import pytest

from nine_worlds.models.target import Target
from nine_worlds.services import novels
from nine_worlds.services.permissions import (
    Action,
    AuthorizationError,
    Ownership,
    authorize,
    authorize_on,
    can_user_edit_chapter,
    can_user_edit_novel,
    require,
    resolve_ownership,
    verify_owner_access,
)


def test_owner_is_allowed_every_action():
    for action in Action:
        assert authorize("owner", action)


@pytest.mark.parametrize("action", [Action.MANAGE_USERS])
def test_admin_lacks_owner_only_actions(action):
    assert not authorize("admin", action)


def test_admin_has_admin_only_actions():
    assert authorize("admin", Action.FEATURE_NOVEL)
    assert authorize("admin", Action.VIEW_ADMIN_LOGS)
    assert authorize("admin", Action.RECONCILE_STATISTICS)


def test_moderator_can_moderate_but_not_feature():
    assert authorize("moderator", Action.MODERATE_CONTENT)
    assert authorize("moderator", Action.EDIT_OWN_NOVEL)
    assert not authorize("moderator", Action.FEATURE_NOVEL)
    assert not authorize("moderator", Action.MANAGE_USERS)


def test_reader_can_read_and_comment_only():
    assert authorize("reader", Action.READ)
    assert authorize("reader", Action.COMMENT)
    assert not authorize("reader", Action.CREATE_NOVEL)
    assert not authorize("reader", Action.MODERATE_CONTENT)


def test_author_own_actions_need_ownership():
    mine = Ownership(actor_id=7, owner_ids=frozenset({7}))
    theirs = Ownership(actor_id=7, owner_ids=frozenset({8}))

    assert authorize("author", Action.CREATE_NOVEL)
    assert authorize("author", Action.EDIT_OWN_NOVEL, mine)
    assert not authorize("author", Action.EDIT_OWN_NOVEL, theirs)
    assert not authorize("translator", Action.DELETE_OWN_NOVEL)


def test_unknown_role_is_denied():
    assert not authorize(None, Action.READ)
    assert not authorize("wizard", Action.READ)


def test_require_raises():
    with pytest.raises(AuthorizationError):
        require("reader", Action.CREATE_NOVEL)
    require("owner", Action.MANAGE_USERS)


async def test_verify_owner_access_reads_role_from_db(db, owner, admin):
    await verify_owner_access(db, owner.id)
    with pytest.raises(AuthorizationError):
        await verify_owner_access(db, admin.id)
    with pytest.raises(AuthorizationError):
        await verify_owner_access(db, 99999)


async def test_chapter_ownership_includes_novel_owners(db, author, translator, make_user):
    other = await make_user(2)
    novel = await novels.create_novel(db, author.id, "Ashes", "A summary", translator_id=translator.id)
    chapter = await novels.create_chapter(db, author.id, novel.id, "One", "Text")

    ownership = await resolve_ownership(db, translator.id, Target.chapter(chapter.id))
    assert ownership.is_owner
    assert ownership.owner_ids == frozenset({author.id, translator.id})

    assert await can_user_edit_chapter(db, translator.id, chapter.id)
    assert await can_user_edit_novel(db, author.id, novel.id)
    assert not await can_user_edit_novel(db, other.id, novel.id)


async def test_authorize_on_missing_target_is_denied(db, author):
    assert not await authorize_on(db, author.id, Action.EDIT_OWN_NOVEL, Target.novel(424242))
