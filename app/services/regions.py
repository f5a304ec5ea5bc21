"""Best-effort regional bucketing of TV titles.

The heuristics here are knowingly imprecise: mixed-language titles and
sparse subtitles can land in the wrong bucket.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Literal

from ..models import CardItem
from ..source_models import DoubanItem

Region = Literal["cn", "kr", "jp", "us"]


@dataclass(frozen=True)
class RegionalTag:
    """A Douban tag list feeding one regional TV bucket."""

    tag: str
    region: Region


REGIONAL_TAGS: tuple[RegionalTag, ...] = (
    RegionalTag(tag="国产剧", region="cn"),
    RegionalTag(tag="韩剧", region="kr"),
    RegionalTag(tag="日剧", region="jp"),
    RegionalTag(tag="美剧", region="us"),
    RegionalTag(tag="英剧", region="us"),
)

KOREAN_SUBTITLE_RE = re.compile(r"韩|韓|korean|\bkr\b")
JAPANESE_SUBTITLE_RE = re.compile(r"日|japan|\bjp\b|动漫|動畫|日漫")
LOCAL_SUBTITLE_RE = re.compile(r"中国|國|大陆|大陸|港|台|普通话|國語|華語|mandarin|\bzh\b")
WESTERN_SUBTITLE_RE = re.compile(
    r"\b(us|usa|uk|gb|british|england|europe|france|germany|german|spain|"
    r"spanish|italy|italian|canada|australia)\b|美剧|美劇|英剧|英劇|欧美|歐美"
)

HANGUL_RE = re.compile(r"[가-힣]")
KANA_RE = re.compile(r"[ぁ-ゔァ-ヴ]")
KOREAN_TITLE_RE = re.compile(r"韩|韓")
JAPANESE_TITLE_RE = re.compile(r"日剧|日劇|日版|日本")
LOCAL_TITLE_RE = re.compile(r"中国|國|大陆|大陸|港|台|華語|华语")
CJK_RE = re.compile(r"[一-鿿]")


def _explicit_region(item: DoubanItem) -> Region | None:
    region = (item.region or "").strip().lower()
    if region in {"kr", "jp", "us"}:
        return region  # type: ignore[return-value]
    if region in {"cn", "hk", "tw"}:
        return "cn"
    return None


def _subtitle_region(item: DoubanItem) -> Region | None:
    subtitle = (item.subtitle or "").lower()
    if not subtitle:
        return None
    if KOREAN_SUBTITLE_RE.search(subtitle):
        return "kr"
    if JAPANESE_SUBTITLE_RE.search(subtitle):
        return "jp"
    if LOCAL_SUBTITLE_RE.search(subtitle):
        return "cn"
    if WESTERN_SUBTITLE_RE.search(subtitle):
        return "us"
    return None


def _title_region(title: str) -> Region | None:
    if HANGUL_RE.search(title) or KOREAN_TITLE_RE.search(title):
        return "kr"
    if KANA_RE.search(title) or JAPANESE_TITLE_RE.search(title):
        return "jp"
    if LOCAL_TITLE_RE.search(title) or CJK_RE.search(title):
        return "cn"
    return None


def classify_region(item: DoubanItem) -> Region:
    """Return a best guess region for a Douban TV subject.

    Explicit region tags win, then subtitle tokens, then the script of the
    title; anything left over is treated as Western.
    """

    return (
        _explicit_region(item)
        or _subtitle_region(item)
        or _title_region(item.title or "")
        or "us"
    )


@dataclass
class RegionalSplit:
    """Douban TV subjects grouped per region."""

    cn: list[DoubanItem] = field(default_factory=list)
    kr: list[DoubanItem] = field(default_factory=list)
    jp: list[DoubanItem] = field(default_factory=list)
    us: list[DoubanItem] = field(default_factory=list)

    def bucket(self, region: Region) -> list[DoubanItem]:
        return getattr(self, region)

    def total(self) -> int:
        return len(self.cn) + len(self.kr) + len(self.jp) + len(self.us)


def split_tv_by_region(items: Iterable[DoubanItem]) -> RegionalSplit:
    split = RegionalSplit()
    for item in items:
        split.bucket(classify_region(item)).append(item)
    return split


def dedup_douban(items: Iterable[DoubanItem]) -> list[DoubanItem]:
    seen: set[str] = set()
    result: list[DoubanItem] = []
    for item in items:
        if not item.id or item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result


def split_from_tag_lists(tag_lists: dict[str, list[DoubanItem]]) -> RegionalSplit:
    """Build regional buckets from the per-tag Douban lists."""

    grouped: dict[Region, list[DoubanItem]] = {"cn": [], "kr": [], "jp": [], "us": []}
    for definition in REGIONAL_TAGS:
        grouped[definition.region].extend(tag_lists.get(definition.tag, []))
    return RegionalSplit(
        cn=dedup_douban(grouped["cn"]),
        kr=dedup_douban(grouped["kr"]),
        jp=dedup_douban(grouped["jp"]),
        us=dedup_douban(grouped["us"]),
    )


def is_korean_tv(card: CardItem) -> bool:
    language = (card.original_language or "").lower()
    return language == "ko" or "KR" in (card.origin_country or [])


def is_japanese_tv(card: CardItem) -> bool:
    language = (card.original_language or "").lower()
    return language == "ja" or "JP" in (card.origin_country or [])
