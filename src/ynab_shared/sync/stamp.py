"""Version stamps embedded in transaction memos.

A transaction mirrored into another ledger carries a stamp at the start of its
memo::

    <origin_id>@<knowledge> | <original memo>

``origin_id`` is the id of the transaction it was produced from and
``knowledge`` the source ledger's server knowledge when it was written. The
stamp replaces a real change-feed cursor: a mirror is stale whenever the source
ledger's knowledge has moved past the stamped value.
"""

from ..models import VersionStamp

STAMP_DELIMITER = "@"
MEMO_SEPARATOR = "|"


def encode(origin_id: str, knowledge: int, memo: str | None) -> str:
    """Prefix ``memo`` with the stamp of ``origin_id`` at ``knowledge``."""
    return f"{origin_id}{STAMP_DELIMITER}{knowledge} {MEMO_SEPARATOR} {memo or ''}"


def decode(memo: str | None) -> VersionStamp | None:
    """
    Parse the stamp at the start of a memo.

    Returns:
        The stamp, or None when the memo carries none or its knowledge is not
        an integer
    """
    if not memo:
        return None

    segment = memo.split(MEMO_SEPARATOR, 1)[0]
    if STAMP_DELIMITER not in segment:
        return None

    origin_id, knowledge = segment.split(STAMP_DELIMITER, 1)
    origin_id = origin_id.strip()
    if not origin_id:
        return None

    try:
        return VersionStamp(origin_id=origin_id, knowledge=int(knowledge.strip()))
    except ValueError:
        return None


def needs_update(current_knowledge: int, memo: str | None) -> bool:
    """
    Decide whether a mirror must be rewritten.

    Unstamped (or legacy) memos are always refreshed; stamped ones only when
    the source ledger has moved past the stamped knowledge.
    """
    stamp = decode(memo)
    if stamp is None:
        return True
    return current_knowledge > stamp.knowledge


def stamped_origin_id(memo: str | None) -> str | None:
    """
    Exact origin id of a stamped memo.

    Also understands the legacy ``"<id> @ <memo>"`` form, whose knowledge is
    missing, so such mirrors are still found (and then refreshed).
    """
    if not memo or STAMP_DELIMITER not in memo:
        return None
    origin_id = memo.split(STAMP_DELIMITER, 1)[0].strip()
    return origin_id or None


def is_stamped(memo: str | None) -> bool:
    """True if the memo contains the stamp delimiter."""
    return bool(memo) and STAMP_DELIMITER in memo
