#!/usr/bin/env python3
"""
Distress line generator (no GenAI / no LLMs)

Builds short onomatopoeic lines (gasps, chokes, coughs, panting) out of the
tone-tagged banks in distress_lexicon.py, optionally with a user phrase
spliced in raw or "broken" into a stuttering form.

Guarantees:
- ALWAYS returns a string; "" only when no lexicon is loaded
- Same seed text + same parameters -> byte-identical line
- A raw phrase is spliced in unmodified
- A fragment never repeats the one before it unless the pool leaves no choice
- At most one retch ("burst") word per line

Notes:
- Seeded lines use FNV-1a + mulberry32, so they match the browser build.
- Without seed text every call draws from its own fresh random.Random().
"""

from __future__ import annotations
import argparse
import json
import math
import random
import re
import sys
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from distress_lexicon import (
    ROLES,
    LexiconBank,
    LexiconEntry,
    Tier,
    Tiers,
    bank_from_dict,
    bank_to_dict,
    load_lexicon,
)


RNG = Callable[[], float]

MAX_PHRASE_LEN = 40
MAX_SEED_LEN = 40

ELLIPSIS = "…"
SOKUON = "っ"


# -----------------------------
# Sanitizer
# -----------------------------

def sanitize(text, max_len: int) -> str:
    if not text:
        return ""
    cleaned = str(text).strip()[:max_len]
    # the second strip keeps the result stable when brackets sat at an edge
    return re.sub(r"[<>]", "", cleaned).strip()


# -----------------------------
# Seeded randomness
# -----------------------------

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


def seed_from_text(text: str) -> int:
    """FNV-1a over UTF-16 code units, same as the browser build."""
    h = 2166136261
    units = text.encode("utf-16-le")
    for i in range(0, len(units), 2):
        h ^= units[i] | (units[i + 1] << 8)
        h = _imul(h, 16777619)
    return h


def make_generator(seed: int) -> RNG:
    """mulberry32: floats in [0, 1), reproducible bit for bit."""
    state = seed & _MASK32

    def rng() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        r = state
        r = _imul(r ^ (r >> 15), r | 1)
        r ^= (r + _imul(r ^ (r >> 7), r | 61)) & _MASK32
        return ((r ^ (r >> 14)) & _MASK32) / 4294967296

    return rng


def unseeded_generator() -> RNG:
    return random.Random().random


def pick(rng: RNG, items: Sequence):
    return items[min(int(rng() * len(items)), len(items) - 1)]


def weighted_index(rng: RNG, weights: Sequence[float]) -> int:
    total = sum(w for w in weights if w > 0)
    if total <= 0:
        return min(int(rng() * len(weights)), len(weights) - 1)
    r = rng() * total
    last = 0
    for i, w in enumerate(weights):
        if w <= 0:
            continue
        last = i
        r -= w
        if r <= 0:
            return i
    return last


def weighted_choice(rng: RNG, items: Sequence, weights: Sequence[float]):
    return items[weighted_index(rng, weights)]


# -----------------------------
# Parameters + defaults
# -----------------------------

TONES = ("rage", "emotionless", "timid", "shaken", "panic")
TONE_ALIASES = {
    "harsh": "rage",
    "neutral": "emotionless",
    "soft": "timid",
    "intense": "shaken",
}
STYLES = ("none", "restrained", "unsteady", "flat")
FLOWS = ("none", "sudden", "endure", "continuous")
LENGTHS = ("short", "medium", "long", "xlong")
PHRASE_MODES = ("raw", "broken")
BREAK_RULES = ("cut", "sokuon", "choke", "repeat", "split")
BREAK_INTENSITIES = {"weak": 0, "mid": 1, "strong": 2}
SYMBOLS = ("!", "!?", "?!", "♡")

# what any unknown or missing value resolves to
DEFAULTS = {
    "tone": "emotionless",
    "style": "none",
    "flow": "none",
    "length": "medium",
    "phrase_mode": "raw",
    "tier": 1,
}

_CAMEL_KEYS = {
    "phraseMode": "phrase_mode",
    "breakIntensity": "break_intensity",
    "breakRules": "break_rules",
    "breakWeights": "break_weights",
    "seedText": "seed_text",
    "reduceEllipsis": "reduce_ellipsis",
    "symbolOptions": "symbol_options",
}


@dataclass
class GenerationParameters:
    level: object = 3
    length: str = "medium"
    tone: str = "neutral"
    style: str = "none"
    flow: str = "none"
    phrase: str = ""
    phrase_mode: str = "raw"
    break_intensity: object = "mid"
    break_rules: Sequence[str] = ()
    break_weights: Mapping[str, float] = field(default_factory=dict)
    seed_text: str = ""
    reduce_ellipsis: bool = False
    symbol_options: Sequence[str] = ()

    @classmethod
    def from_mapping(cls, data) -> "GenerationParameters":
        """Accepts snake_case or camelCase keys; unknown keys are ignored."""
        if not isinstance(data, Mapping):
            return cls()
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            key = _CAMEL_KEYS.get(key, key)
            if key in names and value is not None:
                kwargs[key] = value
        return cls(**kwargs)


def _key(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def resolve_choice(value, allowed: Sequence[str], default: str) -> str:
    key = _key(value)
    return key if key in allowed else default


def resolve_tone(value) -> str:
    key = _key(value)
    key = TONE_ALIASES.get(key, key)
    return key if key in TONES else DEFAULTS["tone"]


def level_to_tier(level) -> int:
    if isinstance(level, bool):
        return DEFAULTS["tier"]
    try:
        num = float(level)
    except (TypeError, ValueError):
        return DEFAULTS["tier"]
    if math.isnan(num) or num < 1 or num > 5:
        return DEFAULTS["tier"]
    if num <= 2:
        return 0
    if num < 4:
        return 1
    return 2


def break_tier(value) -> int:
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return value if 0 <= value <= 2 else 1
    key = _key(value)
    if key.isdigit():
        return break_tier(int(key))
    return BREAK_INTENSITIES.get(key, 1)


def _as_list(values) -> List[str]:
    if isinstance(values, str):
        return [values]
    if isinstance(values, (list, tuple, set, frozenset)):
        return [v for v in values if isinstance(v, str)]
    return []


def resolve_rules(rules) -> Tuple[str, ...]:
    wanted = {_key(r) for r in _as_list(rules)}
    return tuple(r for r in BREAK_RULES if r in wanted)


def resolve_weights(weights) -> Dict[str, float]:
    out: Dict[str, float] = {}
    if not isinstance(weights, Mapping):
        return out
    for rule, raw in weights.items():
        rule = _key(rule)
        if rule not in BREAK_RULES:
            continue
        try:
            w = float(raw)
        except (TypeError, ValueError):
            w = 1.0
        if not math.isfinite(w):
            w = 1.0
        out[rule] = max(0.0, w)
    return out


def resolve_flag(value) -> bool:
    """Only True, 1 and the strings "true", "1", "yes", "on" count as set."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return False


def resolve_symbols(symbols) -> Tuple[str, ...]:
    wanted = set(_as_list(symbols))
    return tuple(s for s in SYMBOLS if s in wanted)


# -----------------------------
# Tables
# -----------------------------

# tone of the line -> weight per entry tone tag
TONE_WEIGHTS: Dict[str, Dict[str, float]] = {
    "rage": {"harsh": 3.0, "intense": 1.6, "neutral": 0.8, "soft": 0.3},
    "emotionless": {"harsh": 0.7, "intense": 0.5, "neutral": 3.0, "soft": 1.2},
    "timid": {"harsh": 0.3, "intense": 0.6, "neutral": 1.3, "soft": 3.0},
    "shaken": {"harsh": 1.0, "intense": 3.0, "neutral": 0.6, "soft": 1.2},
    "panic": {"harsh": 2.0, "intense": 2.4, "neutral": 0.6, "soft": 0.5},
}

# slot overrides used by the flow builders
STRONG_WEIGHTS = {"harsh": 2.5, "intense": 2.5, "neutral": 0.6, "soft": 0.3}
SOFT_WEIGHTS = {"harsh": 0.3, "intense": 0.6, "neutral": 1.2, "soft": 3.0}
SLOT_WEIGHTS = {"strong": STRONG_WEIGHTS, "soft": SOFT_WEIGHTS}

LEVEL_MULTIPLIERS: Tuple[Dict[str, float], ...] = (
    {"harsh": 0.7, "intense": 0.8, "neutral": 1.1, "soft": 1.3},
    {"harsh": 1.0, "intense": 1.0, "neutral": 1.0, "soft": 1.0},
    {"harsh": 1.3, "intense": 1.3, "neutral": 0.9, "soft": 0.8},
)

# (drop a tier below, raise a tier above)
JITTER_THRESHOLDS = {
    "none": (0.15, 0.85),
    "restrained": (0.25, 0.90),
    "unsteady": (0.20, 0.80),
    "flat": (0.08, 0.92),
}

REPEAT_PENALTY = {"rage": 0.8, "emotionless": 0.65, "timid": 0.7, "shaken": 0.75, "panic": 0.8}

ELLIPSIS_STRIP = {"rage": 0.25, "emotionless": 0.35, "timid": 0.1, "shaken": 0.15, "panic": 0.3}
STYLE_STRIP_DELTA = {"none": 0.0, "restrained": 0.1, "unsteady": -0.05, "flat": 0.2}
REDUCED_ELLIPSIS_BONUS = 0.2

SYMBOL_CHANCE = {"rage": 0.7, "panic": 0.7, "shaken": 0.5, "timid": 0.4, "emotionless": 0.3}

BURST_MARKERS = ("おぇ", "おえ", "うぇ", "ゔぇ", "う゛ぇ", "げぇ", "ゔぉ")
BURST_TONES = {"rage", "shaken", "panic"}
BURST_ROLES = ("cont", "cut")

# tones that only keep their best-fitting entries per tier
POOL_CAPS = {"emotionless": 6, "timid": 6}


# -----------------------------
# Sound shape
# -----------------------------

_NOISE_RE = re.compile(r"[…\.。、,!?！？♡~〜\s]")
_ELLIPSIS_RUN = re.compile("…{2,}")

SOUND_GROUPS = (
    ("nasal", "んむぬンム"),
    ("breath", "はひふへほハヒフヘホ"),
    ("guttural", "かきくけこがぎぐげごカキクケコ"),
    ("vowel", "あいうえおぁぃぅぇぉアイウエオ"),
    ("harsh", "ゔヴ"),
)
_DAKUTEN = ("゛", "゙")


def sound_core(text: str) -> str:
    return _NOISE_RE.sub("", text)


def sound_key(text: str) -> str:
    return sound_core(text)[:2]


def sound_group(text: str) -> str:
    core = sound_core(text)
    if not core:
        return "other"
    if core[1:2] in _DAKUTEN:
        return "harsh"
    for name, chars in SOUND_GROUPS:
        if core[0] in chars:
            return name
    return "other"


def compress_ellipsis(text: str) -> str:
    return _ELLIPSIS_RUN.sub(ELLIPSIS, text)


def is_burst(text: str) -> bool:
    return any(m in text for m in BURST_MARKERS)


def style_length_bias(style: str, text: str) -> float:
    n = len(sound_core(text))
    if style == "restrained":
        return 1.5 if n <= 2 else 0.8
    if style == "unsteady":
        if n >= 4:
            return 1.4
        if n <= 2:
            return 0.8
    return 1.0


def after_length_bias(text: str) -> float:
    n = len(sound_core(text))
    if n <= 2:
        return 1.4
    if n <= 3:
        return 1.2
    return 0.85


# -----------------------------
# Generation context
# -----------------------------

@dataclass(frozen=True)
class GenerationContext:
    rng: RNG
    tone: str = DEFAULTS["tone"]
    style: str = DEFAULTS["style"]
    flow: str = DEFAULTS["flow"]
    length: str = DEFAULTS["length"]
    intensity: int = DEFAULTS["tier"]
    pools: Mapping[str, Tiers] = field(default_factory=dict)
    burst_free: Mapping[str, Tiers] = field(default_factory=dict)
    reduce_ellipsis: bool = False
    symbols: Tuple[str, ...] = ()


def _cap_tier(tier: Tier, tone: str, cap: Optional[int]) -> Tier:
    if cap is None or len(tier) <= cap:
        return tuple(tier)
    table = TONE_WEIGHTS[tone]
    ranked = sorted(range(len(tier)), key=lambda i: -table.get(tier[i].tone, 1.0))
    keep = sorted(ranked[:cap])
    return tuple(tier[i] for i in keep)


def build_pools(bank: LexiconBank, tone: str, intensity: int) -> Tuple[Dict[str, Tiers], Dict[str, Tiers]]:
    """
    Per-call pools: burst words gated by tone and tier, then capped per tone.

    Returns (pools, burst_free). Both hold new tuples; the bank is untouched.
    burst_free is pools minus burst words, under the same per-tone cap, so a
    resampled burst slot draws from the entries the first draw could see.
    A tier that filtering would empty keeps its unfiltered entries.
    """
    allow_burst = intensity >= 1 and tone in BURST_TONES
    cap = POOL_CAPS.get(tone)
    pools: Dict[str, Tiers] = {}
    burst_free: Dict[str, Tiers] = {}
    for role in ROLES:
        tiers = bank.role(role)
        if role in BURST_ROLES:
            clean = tuple(tuple(e for e in tier if not is_burst(e.text)) or tier for tier in tiers)
            burst_free[role] = tuple(_cap_tier(t, tone, cap) for t in clean)  # type: ignore
            base = tiers if allow_burst else clean
        else:
            base = tiers
        pools[role] = tuple(_cap_tier(t, tone, cap) for t in base)  # type: ignore
    return pools, burst_free


def build_context(params: GenerationParameters, bank: LexiconBank, rng: RNG) -> GenerationContext:
    tone = resolve_tone(params.tone)
    intensity = level_to_tier(params.level)
    pools, burst_free = build_pools(bank, tone, intensity)
    return GenerationContext(
        rng=rng,
        tone=tone,
        style=resolve_choice(params.style, STYLES, DEFAULTS["style"]),
        flow=resolve_choice(params.flow, FLOWS, DEFAULTS["flow"]),
        length=resolve_choice(params.length, LENGTHS, DEFAULTS["length"]),
        intensity=intensity,
        pools=pools,
        burst_free=burst_free,
        reduce_ellipsis=resolve_flag(params.reduce_ellipsis),
        symbols=resolve_symbols(params.symbol_options),
    )


# -----------------------------
# Weighted sampler
# -----------------------------

def jitter_tier(rng: RNG, intensity: int, low: float = 0.15, high: float = 0.85, top: int = 2) -> int:
    roll = rng()
    tier = max(0, min(top, intensity))
    if roll < low and tier > 0:
        return tier - 1
    if roll > high and tier < top:
        return tier + 1
    return tier


def _tier_entries(tiers: Tiers, idx: int) -> Tier:
    if tiers[idx]:
        return tiers[idx]
    for dist in (1, 2):
        for j in (idx - dist, idx + dist):
            if 0 <= j < len(tiers) and tiers[j]:
                return tiers[j]
    return ()


def entry_weight(
    ctx: GenerationContext,
    entry: LexiconEntry,
    tier: int,
    role: str,
    prev_text: Optional[str] = None,
    tone_weights: Optional[Mapping[str, float]] = None,
) -> float:
    table = tone_weights or TONE_WEIGHTS[ctx.tone]
    w = table.get(entry.tone, 1.0)
    w *= LEVEL_MULTIPLIERS[tier].get(entry.tone, 1.0)
    w *= style_length_bias(ctx.style, entry.text)
    if role == "after":
        w *= after_length_bias(entry.text)
    if prev_text:
        if sound_key(entry.text) == sound_key(prev_text) or sound_group(entry.text) == sound_group(prev_text):
            w *= REPEAT_PENALTY[ctx.tone]
    return w


def shape_ellipsis(ctx: GenerationContext, text: str) -> str:
    p = ELLIPSIS_STRIP[ctx.tone] + STYLE_STRIP_DELTA[ctx.style]
    if ctx.reduce_ellipsis:
        p += REDUCED_ELLIPSIS_BONUS
    if ctx.rng() < p:
        stripped = text.replace(ELLIPSIS, "")
        if stripped:
            return stripped
    return compress_ellipsis(text)


def _sample(
    ctx: GenerationContext,
    role: str,
    prev_text: Optional[str] = None,
    strict: bool = False,
    tone_weights: Optional[Mapping[str, float]] = None,
    pools: Optional[Mapping[str, Tiers]] = None,
    avoid: Sequence[str] = (),
) -> Tuple[str, str]:
    """
    Returns (entry text, shaped text); ("", "") when the role has no entries.

    prev_text and every text in avoid are excluded; with strict their sound
    keys are excluded too. An empty result falls back to the whole tier.
    """
    tiers = (pools or ctx.pools).get(role)
    if not tiers:
        return "", ""
    low, high = JITTER_THRESHOLDS[ctx.style]
    tier = jitter_tier(ctx.rng, ctx.intensity, low, high, top=len(tiers) - 1)
    entries = _tier_entries(tiers, tier)
    if not entries:
        return "", ""

    candidates: Sequence[LexiconEntry] = entries
    banned = {t for t in avoid if t}
    if prev_text:
        banned.add(prev_text)
    if banned:
        candidates = [e for e in entries if e.text not in banned]
        if strict:
            keys = {sound_key(t) for t in banned}
            candidates = [e for e in candidates if sound_key(e.text) not in keys]
        if not candidates:
            candidates = entries

    penalize = None if strict else prev_text
    weights = [entry_weight(ctx, e, tier, role, penalize, tone_weights) for e in candidates]
    text = weighted_choice(ctx.rng, candidates, weights).text
    if role in ("cut", "after"):
        return text, shape_ellipsis(ctx, text)
    return text, text


def sample_fragment(
    ctx: GenerationContext,
    role: str,
    prev_text: Optional[str] = None,
    strict: bool = False,
    tone_weights: Optional[Mapping[str, float]] = None,
) -> str:
    return _sample(ctx, role, prev_text, strict, tone_weights)[1]


# -----------------------------
# Phrase breaker
# -----------------------------

_BREAK_STRIP = re.compile(r"[A-Za-z0-9]|ー")
REMAIN_RATES = (0.8, 0.6, 0.4)


def clean_phrase(text: str) -> str:
    return _BREAK_STRIP.sub("", text or "").strip()


def split_phrase(cleaned: str, intensity: int) -> Tuple[str, str]:
    rate = REMAIN_RATES[intensity] if 0 <= intensity < len(REMAIN_RATES) else REMAIN_RATES[1]
    head = cleaned[: max(1, math.floor(len(cleaned) * rate))]
    tail = cleaned[max(1, math.floor(len(cleaned) * 0.5)):]
    return head, tail


def apply_break_rule(rule: str, head: str, tail: str) -> str:
    if rule == "cut":
        return f"{head}{ELLIPSIS}"
    if rule == "sokuon":
        return f"{head}{SOKUON}{ELLIPSIS}"
    if rule == "choke":
        return f"{head}{ELLIPSIS}{SOKUON}"
    if rule == "repeat":
        stutter = head[: max(1, math.floor(len(head) * 0.6))]
        return f"{stutter}{ELLIPSIS}{head}{ELLIPSIS}"
    # split
    return f"{head}{ELLIPSIS}{tail[: max(1, math.floor(len(tail) * 0.5))]}{ELLIPSIS}"


def choose_break_rule(rng: RNG, rules=None, weights=None) -> str:
    enabled = resolve_rules(rules) or BREAK_RULES
    table = resolve_weights(weights)
    return weighted_choice(rng, enabled, [table.get(r, 1.0) for r in enabled])


def break_phrase(text: str, intensity: int, rng: RNG, rules=None, weights=None) -> str:
    cleaned = clean_phrase(text)
    if not cleaned:
        return ""
    head, tail = split_phrase(cleaned, intensity)
    return apply_break_rule(choose_break_rule(rng, rules, weights), head, tail)


def make_break_example(text: str, intensity, rule: str) -> str:
    """Preview of one rule on a phrase; "-" when nothing is left to break."""
    cleaned = clean_phrase(text)
    if not cleaned:
        return "-"
    head, tail = split_phrase(cleaned, break_tier(intensity))
    return apply_break_rule(rule, head, tail)


# -----------------------------
# Structure tables
# -----------------------------

GROUPS = ("cut", "cont", "short", "long")

# how much each tone leans toward each pattern group (sums to 100)
TONE_STRUCTURE: Dict[str, Dict[str, float]] = {
    "rage": {"cut": 40, "cont": 25, "short": 20, "long": 15},
    "emotionless": {"cut": 20, "cont": 25, "short": 35, "long": 20},
    "timid": {"cut": 15, "cont": 30, "short": 35, "long": 20},
    "shaken": {"cut": 25, "cont": 35, "short": 10, "long": 30},
    "panic": {"cut": 35, "cont": 35, "short": 10, "long": 20},
}

STYLE_STRUCTURE: Dict[str, Dict[str, float]] = {
    "none": {},
    "restrained": {"short": 1.3, "long": 0.7},
    "unsteady": {"cont": 1.3, "long": 1.3, "short": 0.7},
    "flat": {"cut": 1.3, "cont": 0.7},
}

Pattern = Tuple[str, ...]

# length -> group -> [(weight, pattern)]
PATTERNS: Dict[str, Dict[str, List[Tuple[float, Pattern]]]] = {
    "short": {
        "cut": [(60, ("pre", "cut")), (40, ("cont", "cut"))],
        "cont": [(100, ("pre", "cont"))],
        "short": [(50, ("pre", "cont")), (50, ("cut", "after"))],
        "long": [(100, ("pre", "cont", "cut"))],
    },
    "medium": {
        "cut": [(55, ("pre", "cont", "cut")), (45, ("pre", "cut", "cut"))],
        "cont": [(60, ("pre", "cont", "cont")), (40, ("pre", "cont", "after"))],
        "short": [(100, ("pre", "cut"))],
        "long": [(100, ("pre", "cont", "cut", "after"))],
    },
    "long": {
        "cut": [(60, ("pre", "cont", "cut", "after")), (40, ("pre", "cut", "cont", "cut", "after"))],
        "cont": [(60, ("pre", "cont", "cont", "cut", "after")), (40, ("pre", "cont", "cont", "after"))],
        "short": [(100, ("pre", "cont", "cut"))],
        "long": [(100, ("pre", "cont", "cont", "cut", "after", "after"))],
    },
    "xlong": {
        "cut": [
            (50, ("pre", "cont", "cut", "cont", "cut", "after")),
            (50, ("pre", "cut", "cont", "cut", "after", "after")),
        ],
        "cont": [
            (60, ("pre", "cont", "cont", "cont", "cut", "after")),
            (40, ("pre", "cont", "cont", "cut", "cont", "after")),
        ],
        "short": [(100, ("pre", "cont", "cut", "after"))],
        "long": [(100, ("pre", "cont", "cont", "cut", "cont", "cut", "after", "after"))],
    },
}

SUDDEN_PATTERNS: Dict[str, Pattern] = {
    "short": ("cont:strong", "cut:strong"),
    "medium": ("cont:strong", "cut:strong", "cut"),
    "long": ("cont:strong", "cut:strong", "cont", "cut:strong"),
    "xlong": ("cont:strong", "cut:strong", "cont:strong", "cut", "after"),
}

# flow "none": (roll below, flow)
FLOW_OVERRIDES = ((0.18, "sudden"), (0.36, "endure"), (0.56, "continuous"))


def reweight(weights: Mapping[str, float], multipliers: Mapping[str, float]) -> Dict[str, float]:
    scaled = {k: w * multipliers.get(k, 1.0) for k, w in weights.items()}
    total = sum(scaled.values())
    if total <= 0:
        return dict(weights)
    return {k: w * 100.0 / total for k, w in scaled.items()}


def structure_bias(tone: str, style: str) -> Dict[str, float]:
    return reweight(TONE_STRUCTURE[tone], STYLE_STRUCTURE.get(style, {}))


# -----------------------------
# Composer / flow engine
# -----------------------------

@dataclass
class Fragment:
    role: str
    source: str
    text: str
    bias: str = ""


def choose_group(ctx: GenerationContext) -> str:
    groups = PATTERNS[ctx.length]
    bias = structure_bias(ctx.tone, ctx.style)
    names = [g for g in GROUPS if g in groups]
    return weighted_choice(ctx.rng, names, [bias.get(g, 0.0) for g in names])


def choose_pattern(ctx: GenerationContext) -> Pattern:
    options = PATTERNS[ctx.length][choose_group(ctx)]
    return weighted_choice(ctx.rng, [p for _, p in options], [w for w, _ in options])


def assemble(ctx: GenerationContext, slots: Sequence[str]) -> List[Fragment]:
    """Fill slots like "cont" or "cont:strong" left to right."""
    out: List[Fragment] = []
    for slot in slots:
        role, _, bias = slot.partition(":")
        prev = out[-1] if out else None
        strict = prev is not None and prev.role == role
        source, text = _sample(
            ctx,
            role,
            prev.source if prev else None,
            strict,
            SLOT_WEIGHTS.get(bias),
        )
        if source:
            out.append(Fragment(role, source, text, bias))
    return out


def build_default(ctx: GenerationContext) -> List[Fragment]:
    return assemble(ctx, choose_pattern(ctx))


def build_sudden(ctx: GenerationContext) -> List[Fragment]:
    return assemble(ctx, SUDDEN_PATTERNS[ctx.length])


def build_endure(ctx: GenerationContext) -> List[Fragment]:
    afters = ("after", "after") if ctx.length in ("long", "xlong") else ("after",)
    return assemble(ctx, ("pre:soft", "cont", "cut", "cut") + afters)


def build_continuous(ctx: GenerationContext) -> List[Fragment]:
    slots = list(choose_pattern(ctx))
    if "cont" in slots:
        at = slots.index("cont")
    else:
        at = 1 if slots and slots[0] == "pre" else 0
    slots.insert(at, "cont:strong")
    return assemble(ctx, slots)


FLOW_BUILDERS: Dict[str, Callable[[GenerationContext], List[Fragment]]] = {
    "default": build_default,
    "sudden": build_sudden,
    "endure": build_endure,
    "continuous": build_continuous,
}


def resolve_flow(ctx: GenerationContext) -> str:
    if ctx.flow != "none":
        return ctx.flow
    roll = ctx.rng()
    for threshold, flow in FLOW_OVERRIDES:
        if roll < threshold:
            return flow
    return "default"


def dedupe_bursts(ctx: GenerationContext, frags: List[Fragment]) -> None:
    seen = False
    for i, frag in enumerate(frags):
        if not is_burst(frag.source):
            continue
        if not seen:
            seen = True
            continue
        if frag.role not in ctx.burst_free:
            continue
        prev = frags[i - 1] if i else None
        nxt = frags[i + 1] if i + 1 < len(frags) else None
        strict = any(f is not None and f.role == frag.role for f in (prev, nxt))
        source, text = _sample(
            ctx,
            frag.role,
            prev.source if prev else None,
            strict,
            SLOT_WEIGHTS.get(frag.bias),
            pools=ctx.burst_free,
            avoid=(nxt.source,) if nxt else (),
        )
        if source:
            frag.source, frag.text = source, text


def add_symbol(ctx: GenerationContext, frags: List[Fragment]) -> None:
    if not ctx.symbols or not frags:
        return
    if ctx.rng() >= SYMBOL_CHANCE[ctx.tone]:
        return
    symbol = pick(ctx.rng, ctx.symbols)
    cuts = [f for f in frags if f.role == "cut"]
    target = cuts[-1] if cuts else frags[-1]
    target.text = target.text.rstrip(ELLIPSIS) + symbol


def compose_fragments(ctx: GenerationContext) -> List[str]:
    flow = resolve_flow(ctx)
    frags = FLOW_BUILDERS[flow](ctx)

    dedupe_bursts(ctx, frags)

    if flow == "sudden":
        for frag in frags:
            if frag.role == "cont":
                frag.text = frag.text.lstrip(ELLIPSIS) or frag.text

    if ctx.reduce_ellipsis:
        for frag in frags:
            frag.text = compress_ellipsis(frag.text)

    add_symbol(ctx, frags)
    return [f.text for f in frags if f.text]


# -----------------------------
# Main generation
# -----------------------------

def generate_line(params, lexicon) -> str:
    """
    Generate one distress line.

    params may be a GenerationParameters, a mapping of the same fields
    (snake_case or camelCase) or None. lexicon is a LexiconBank, a decoded
    JSON dict of one, or None when nothing is loaded (which gives "").
    """
    if isinstance(lexicon, Mapping):
        lexicon = bank_from_dict(lexicon)
    if lexicon is None:
        return ""
    if not isinstance(params, GenerationParameters):
        params = GenerationParameters.from_mapping(params or {})

    seed = sanitize(params.seed_text, MAX_SEED_LEN)
    rng = make_generator(seed_from_text(seed)) if seed else unseeded_generator()

    ctx = build_context(params, lexicon, rng)
    parts = compose_fragments(ctx)

    phrase = sanitize(params.phrase, MAX_PHRASE_LEN)
    if phrase:
        if resolve_choice(params.phrase_mode, PHRASE_MODES, DEFAULTS["phrase_mode"]) == "broken":
            phrase = break_phrase(
                phrase,
                break_tier(params.break_intensity),
                rng,
                params.break_rules,
                params.break_weights,
            )
        if phrase:
            if len(parts) >= 2:
                parts.insert(1, phrase)
            else:
                parts.append(phrase)

    return " ".join(parts)


# -----------------------------
# CLI
# -----------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="generate onomatopoeic distress lines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  python distress_lines.py --count 5
  python distress_lines.py --tone harsh --level 5 --length long
  python distress_lines.py --phrase たすけて --phrase-mode broken --break-rule repeat
  python distress_lines.py --seed test-seed-1 --flow sudden
  python distress_lines.py --break-example たすけて --break-rule choke
        """,
    )
    parser.add_argument("--count", "-n", type=int, default=1,
                        help="how many lines to generate (default: 1)")
    parser.add_argument("--level", type=int, default=3, help="intensity 1-5 (default: 3)")
    parser.add_argument("--length", default="medium", choices=LENGTHS)
    parser.add_argument("--tone", default="neutral",
                        choices=sorted(set(TONE_ALIASES) | set(TONES)))
    parser.add_argument("--style", default="none", choices=STYLES)
    parser.add_argument("--flow", default="none", choices=FLOWS)
    parser.add_argument("--phrase", default="", help="phrase to splice into the line")
    parser.add_argument("--phrase-mode", default="raw", choices=PHRASE_MODES)
    parser.add_argument("--break-intensity", default="mid", choices=sorted(BREAK_INTENSITIES))
    parser.add_argument("--break-rule", action="append", default=[], choices=BREAK_RULES,
                        help="enable a break rule (repeatable; default: all)")
    parser.add_argument("--seed", default="", help="seed text; same seed gives the same line")
    parser.add_argument("--reduce-ellipsis", action="store_true")
    parser.add_argument("--symbol", action="append", default=[], choices=SYMBOLS,
                        help="allow a trailing symbol (repeatable)")
    parser.add_argument("--lexicon", default=None, help="path to a lexicon JSON file")
    parser.add_argument("--break-example", default=None, metavar="PHRASE",
                        help="print a break preview for PHRASE and exit")
    parser.add_argument("--dump-lexicon", action="store_true",
                        help="print the lexicon as JSON and exit")

    args = parser.parse_args(argv)

    if args.break_example is not None:
        rules = args.break_rule or list(BREAK_RULES)
        for rule in rules:
            print(f"{rule}: {make_break_example(args.break_example, args.break_intensity, rule)}")
        return 0

    bank = load_lexicon(args.lexicon)
    if bank is None:
        print(f"Could not load lexicon: {args.lexicon}", file=sys.stderr)
        return 1

    if args.dump_lexicon:
        print(json.dumps(bank_to_dict(bank), ensure_ascii=False, indent=2))
        return 0

    params = GenerationParameters(
        level=args.level,
        length=args.length,
        tone=args.tone,
        style=args.style,
        flow=args.flow,
        phrase=args.phrase,
        phrase_mode=args.phrase_mode,
        break_intensity=args.break_intensity,
        break_rules=args.break_rule,
        seed_text=args.seed,
        reduce_ellipsis=args.reduce_ellipsis,
        symbol_options=args.symbol,
    )
    for _ in range(max(1, args.count)):
        print(generate_line(params, bank))
    return 0


def repl() -> None:
    print("Distress line generator. Type a phrase (or just press enter), or 'quit'.\n")
    bank = load_lexicon()
    while True:
        try:
            user_text = input("phrase> ").strip()
        except EOFError:
            break
        if user_text.lower() in {"q", "quit", "exit"}:
            break
        print()
        print(generate_line(GenerationParameters(phrase=user_text, phrase_mode="broken"), bank))
        print()


if __name__ == "__main__":
    if len(sys.argv) > 1:
        sys.exit(main())
    else:
        repl()
