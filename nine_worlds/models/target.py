import enum
from dataclasses import dataclass


class TargetKind(enum.Enum):
    NOVEL = "novel"
    CHAPTER = "chapter"
    COMMENT = "comment"


# comments hang off novels or chapters only
COMMENTABLE_KINDS = (TargetKind.NOVEL, TargetKind.CHAPTER)


@dataclass(frozen=True)
class Target:
    """What a comment or reaction is attached to: exactly one novel, chapter or comment."""
    kind: TargetKind
    id: int

    @classmethod
    def novel(cls, novel_id: int) -> "Target":
        return cls(TargetKind.NOVEL, novel_id)

    @classmethod
    def chapter(cls, chapter_id: int) -> "Target":
        return cls(TargetKind.CHAPTER, chapter_id)

    @classmethod
    def comment(cls, comment_id: int) -> "Target":
        return cls(TargetKind.COMMENT, comment_id)
