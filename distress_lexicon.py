"""
Lexicon banks for the distress line generator.

A bank maps each fragment role to three intensity tiers of tone-tagged
entries:

- pre:   onset sounds that open a line
- cont:  continuation sounds (held, choked, gurgled)
- cut:   sharp breaks (coughs, gasps, retches)
- after: trailing decay (panting, exhaling)

The built-in bank below is what the generator uses unless a JSON file is
supplied. Banks are never mutated; the generator filters into new tuples.
"""

from __future__ import annotations
import json
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


ROLES: Tuple[str, ...] = ("pre", "cont", "cut", "after")
ENTRY_TONES: Tuple[str, ...] = ("harsh", "neutral", "soft", "intense")
TIER_COUNT = 3


@dataclass(frozen=True)
class LexiconEntry:
    text: str
    tone: str = "neutral"


Tier = Tuple[LexiconEntry, ...]
Tiers = Tuple[Tier, Tier, Tier]


@dataclass(frozen=True)
class LexiconBank:
    pre: Tiers
    cont: Tiers
    cut: Tiers
    after: Tiers

    def role(self, name: str) -> Tiers:
        return getattr(self, name)

    def as_dict(self) -> Dict[str, Tiers]:
        return {name: self.role(name) for name in ROLES}


def E(text: str, tone: str = "neutral") -> LexiconEntry:
    if tone not in ENTRY_TONES:
        tone = "neutral"
    return LexiconEntry(text=text, tone=tone)


# -----------------------------
# Built-in banks
# -----------------------------

PRE: Tiers = (
    (
        E("うっ…", "soft"),
        E("ん…", "soft"),
        E("…っ", "neutral"),
        E("う…", "soft"),
        E("は…", "neutral"),
        E("んぅ…", "soft"),
        E("っ…", "neutral"),
        E("く…", "harsh"),
    ),
    (
        E("うぐ…", "harsh"),
        E("うう…", "soft"),
        E("…っ…", "neutral"),
        E("ん…っ", "neutral"),
        E("はっ…", "intense"),
        E("ぐ…", "harsh"),
        E("ひっ…", "intense"),
        E("うぅ…っ", "soft"),
    ),
    (
        E("う゛…", "harsh"),
        E("ぐっ…", "harsh"),
        E("げほっ…", "harsh"),
        E("ぐ…っ", "intense"),
        E("う゛ぐ…", "harsh"),
        E("ひぐっ…", "intense"),
        E("お゛…", "intense"),
        E("んぐっ…", "neutral"),
    ),
)

CONT: Tiers = (
    (
        E("…っ…", "neutral"),
        E("…ん…", "soft"),
        E("…こっ…", "neutral"),
        E("…っ", "neutral"),
        E("…んっ…", "soft"),
        E("…ふ…", "soft"),
        E("…く…", "harsh"),
    ),
    (
        E("…っ…っ…", "intense"),
        E("…こっ…", "neutral"),
        E("…ぐ…", "harsh"),
        E("…ん…っ…", "soft"),
        E("…こっ…っ…", "neutral"),
        E("…おぇ…", "harsh"),
        E("…ひっ…", "intense"),
        E("…く…っ…", "harsh"),
    ),
    (
        E("…っ…っ…っ…", "intense"),
        E("…ごっ…", "harsh"),
        E("…ゔ…", "harsh"),
        E("…ぐっ…っ…", "harsh"),
        E("…っ…こっ…", "neutral"),
        E("…おぇっ…", "harsh"),
        E("…げぇ…っ", "intense"),
        E("…ひぐ…っ…", "intense"),
        E("…ん゛…", "neutral"),
    ),
)

CUT: Tiers = (
    (
        E("はっ…", "neutral"),
        E("けほ…", "soft"),
        E("ひゅっ…", "intense"),
        E("は…", "soft"),
        E("けほっ…", "neutral"),
        E("ふっ…", "soft"),
    ),
    (
        E("かはっ…", "harsh"),
        E("けほっ…", "neutral"),
        E("はぁ…", "soft"),
        E("はっ…は…", "intense"),
        E("けほ…っ", "neutral"),
        E("うぇ…っ", "harsh"),
        E("こほっ…", "soft"),
    ),
    (
        E("がはっ…", "harsh"),
        E("げほっ…", "harsh"),
        E("はぁ…っ", "intense"),
        E("がは…っ", "harsh"),
        E("げほ…っ", "intense"),
        E("おぇ…っ", "harsh"),
        E("ゔぇ……", "intense"),
        E("ひゅ…っ", "soft"),
    ),
)

AFTER: Tiers = (
    (
        E("はぁ…", "soft"),
        E("…はぁ", "neutral"),
        E("…ふぅ", "soft"),
        E("…は…", "neutral"),
        E("…ふぅ…", "soft"),
        E("…ん", "neutral"),
    ),
    (
        E("はぁ…はぁ…", "intense"),
        E("…はぁ", "neutral"),
        E("…ふぅ…", "soft"),
        E("はぁ…っ", "harsh"),
        E("…はぁ……", "neutral"),
        E("…ひゅ…", "intense"),
    ),
    (
        E("はぁ…っ", "harsh"),
        E("…はぁ…っ", "intense"),
        E("…はぁ…はぁ…", "intense"),
        E("はぁ…っ…", "harsh"),
        E("…はぁ…っ…", "neutral"),
        E("…ぜぇ……", "harsh"),
        E("…ひゅー…", "soft"),
    ),
)

DEFAULT_BANK = LexiconBank(pre=PRE, cont=CONT, cut=CUT, after=AFTER)


# -----------------------------
# JSON loading
# -----------------------------

def _parse_entry(raw) -> Optional[LexiconEntry]:
    if isinstance(raw, str):
        return E(raw) if raw else None
    if isinstance(raw, dict):
        text = raw.get("text")
        if not isinstance(text, str) or not text:
            return None
        tone = raw.get("tone")
        return E(text, tone if isinstance(tone, str) else "neutral")
    return None


def _parse_tiers(raw) -> Optional[Tiers]:
    if not isinstance(raw, list) or len(raw) != TIER_COUNT:
        return None
    tiers: List[Tier] = []
    for tier in raw:
        if not isinstance(tier, list):
            return None
        entries = [e for e in (_parse_entry(x) for x in tier) if e is not None]
        tiers.append(tuple(entries))
    return tiers[0], tiers[1], tiers[2]


def bank_from_dict(data) -> Optional[LexiconBank]:
    """Build a bank from decoded JSON, or None when the shape is wrong."""
    if not isinstance(data, dict):
        return None
    roles: Dict[str, Tiers] = {}
    for name in ROLES:
        tiers = _parse_tiers(data.get(name))
        if tiers is None:
            return None
        roles[name] = tiers
    return LexiconBank(**roles)


def load_lexicon(path: Optional[str] = None) -> Optional[LexiconBank]:
    """
    Load a lexicon bank.

    With no path the built-in bank is returned. A path must point at a JSON
    object with "pre", "cont", "cut" and "after" keys, each a list of three
    tiers whose items are either {"text": ..., "tone": ...} objects or bare
    strings (tone "neutral"). Anything unreadable or malformed gives None,
    which the generator treats as "no vocabulary loaded".
    """
    if path is None:
        return DEFAULT_BANK
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None
    return bank_from_dict(data)


def bank_to_dict(bank: LexiconBank) -> Dict[str, List[List[Dict[str, str]]]]:
    return {
        name: [[{"text": e.text, "tone": e.tone} for e in tier] for tier in tiers]
        for name, tiers in bank.as_dict().items()
    }

