from __future__ import annotations


def clamp_text(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + '...'


def first_nonempty_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ''


def split_hashtags(value: str | None) -> list[str]:
    if not value:
        return []
    return [tag for tag in value.split() if tag.strip()]


def join_hashtags(tags: list[str]) -> str:
    return ' '.join(tag.strip() for tag in tags if tag and tag.strip())
