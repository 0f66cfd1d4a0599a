import random
import unittest

from distress_lexicon import DEFAULT_BANK, E, LexiconBank
from distress_lines import (
    BURST_MARKERS,
    GenerationContext,
    build_pools,
    compress_ellipsis,
    entry_weight,
    is_burst,
    jitter_tier,
    make_generator,
    reweight,
    sample_fragment,
    shape_ellipsis,
    sound_group,
    sound_key,
    structure_bias,
    unseeded_generator,
)


def fixed(value):
    return lambda: value


def flat_bank(entries):
    tiers = (tuple(entries), tuple(entries), tuple(entries))
    return LexiconBank(pre=tiers, cont=tiers, cut=tiers, after=tiers)


def context(bank=DEFAULT_BANK, tone="emotionless", intensity=1, rng=None, **kwargs):
    pools, burst_free = build_pools(bank, tone, intensity)
    return GenerationContext(
        rng=rng or unseeded_generator(),
        tone=tone,
        intensity=intensity,
        pools=pools,
        burst_free=burst_free,
        **kwargs
    )


class TestTierJitter(unittest.TestCase):
    def test_low_roll_drops_a_tier(self):
        self.assertEqual(jitter_tier(fixed(0.1), 1), 0)
        self.assertEqual(jitter_tier(fixed(0.1), 2), 1)
        self.assertEqual(jitter_tier(fixed(0.1), 0), 0)

    def test_high_roll_raises_a_tier(self):
        self.assertEqual(jitter_tier(fixed(0.9), 1), 2)
        self.assertEqual(jitter_tier(fixed(0.9), 2), 2)

    def test_middle_roll_keeps_tier(self):
        self.assertEqual(jitter_tier(fixed(0.5), 1), 1)

    def test_custom_thresholds(self):
        self.assertEqual(jitter_tier(fixed(0.2), 1, low=0.25, high=0.9), 0)
        self.assertEqual(jitter_tier(fixed(0.88), 1, low=0.25, high=0.9), 1)

    def test_bounds(self):
        rng = random.Random(3).random
        for _ in range(2000):
            for tier in (0, 1, 2):
                out = jitter_tier(rng, tier)
                self.assertIn(out, (0, 1, 2))
                self.assertLessEqual(abs(out - tier), 1)


class TestSoundShape(unittest.TestCase):
    def test_sound_key(self):
        self.assertEqual(sound_key("…はぁ…っ"), "はぁ")
        self.assertEqual(sound_key("うっ…"), "うっ")
        self.assertEqual(sound_key("…"), "")

    def test_sound_group(self):
        self.assertEqual(sound_group("がはっ…"), "guttural")
        self.assertEqual(sound_group("う゛…"), "harsh")
        self.assertEqual(sound_group("…はぁ"), "breath")
        self.assertEqual(sound_group("んぐっ…"), "nasal")
        self.assertEqual(sound_group("うっ…"), "vowel")
        self.assertEqual(sound_group("っ…"), "other")

    def test_burst_detection(self):
        self.assertTrue(is_burst("…おぇっ…"))
        self.assertTrue(is_burst("ゔぇ……"))
        self.assertFalse(is_burst("げほっ…"))

    def test_compress_ellipsis(self):
        self.assertEqual(compress_ellipsis("ゔぇ……"), "ゔぇ…")
        self.assertEqual(compress_ellipsis("…はぁ…………っ"), "…はぁ…っ")


class TestEntryWeight(unittest.TestCase):
    def test_restrained_favors_short(self):
        ctx = context(style="restrained")
        self.assertAlmostEqual(entry_weight(ctx, E("ん…", "neutral"), 1, "pre"), 4.5)
        self.assertAlmostEqual(entry_weight(ctx, E("…っ…っ…っ…", "neutral"), 1, "pre"), 2.4)

    def test_unsteady_favors_long(self):
        ctx = context(style="unsteady")
        self.assertAlmostEqual(entry_weight(ctx, E("はぁはぁ…", "neutral"), 1, "pre"), 4.2)
        self.assertAlmostEqual(entry_weight(ctx, E("ん…", "neutral"), 1, "pre"), 2.4)

    def test_after_role_bias(self):
        ctx = context()
        self.assertAlmostEqual(entry_weight(ctx, E("…は…", "neutral"), 1, "after"), 4.2)
        self.assertAlmostEqual(entry_weight(ctx, E("…はぁ…っ", "neutral"), 1, "after"), 3.6)
        self.assertAlmostEqual(entry_weight(ctx, E("…はぁ…はぁ…", "neutral"), 1, "after"), 2.55)

    def test_level_multiplier(self):
        ctx = context(tone="rage")
        self.assertAlmostEqual(entry_weight(ctx, E("がは", "harsh"), 2, "pre"), 3.9)
        self.assertAlmostEqual(entry_weight(ctx, E("ふぅ", "soft"), 0, "pre"), 0.39)

    def test_repeat_penalty(self):
        ctx = context()
        plain = entry_weight(ctx, E("はっ…", "neutral"), 1, "pre")
        penalized = entry_weight(ctx, E("はっ…", "neutral"), 1, "pre", prev_text="はぁ…")
        self.assertAlmostEqual(plain, 3.0)
        self.assertAlmostEqual(penalized, 1.95)

    def test_override_table(self):
        ctx = context(tone="timid")
        strong = {"harsh": 2.5, "intense": 2.5, "neutral": 0.6, "soft": 0.3}
        self.assertAlmostEqual(entry_weight(ctx, E("ぐっ", "harsh"), 1, "pre", tone_weights=strong), 2.5)


class TestShapeEllipsis(unittest.TestCase):
    def test_strip_on_low_roll(self):
        ctx = context(tone="timid", rng=fixed(0.05))
        self.assertEqual(shape_ellipsis(ctx, "がはっ…"), "がはっ")

    def test_compress_otherwise(self):
        ctx = context(tone="timid", rng=fixed(0.5))
        self.assertEqual(shape_ellipsis(ctx, "ゔぇ……"), "ゔぇ…")

    def test_never_strips_to_nothing(self):
        ctx = context(tone="timid", rng=fixed(0.0))
        self.assertEqual(shape_ellipsis(ctx, "…"), "…")

    def test_reduce_ellipsis_raises_strip_chance(self):
        # timid strips below 0.1, plus 0.2 when ellipsis is reduced
        ctx = context(tone="timid", rng=fixed(0.25), reduce_ellipsis=True)
        self.assertEqual(shape_ellipsis(ctx, "はぁ…"), "はぁ")


class TestPools(unittest.TestCase):
    def test_caps_do_not_touch_bank(self):
        before = [len(t) for t in DEFAULT_BANK.pre]
        pools, _ = build_pools(DEFAULT_BANK, "timid", 2)
        for role, tiers in pools.items():
            for tier in tiers:
                self.assertLessEqual(len(tier), 6)
                self.assertTrue(tier)
        self.assertEqual([len(t) for t in DEFAULT_BANK.pre], before)

    def test_uncapped_tone_keeps_everything(self):
        pools, _ = build_pools(DEFAULT_BANK, "rage", 2)
        self.assertEqual(pools["cont"], DEFAULT_BANK.cont)

    def test_burst_words_gated_by_tone_and_tier(self):
        def has_burst(pools):
            return any(is_burst(e.text) for tiers in pools.values() for tier in tiers for e in tier)

        self.assertTrue(has_burst(build_pools(DEFAULT_BANK, "rage", 1)[0]))
        self.assertFalse(has_burst(build_pools(DEFAULT_BANK, "rage", 0)[0]))
        self.assertFalse(has_burst(build_pools(DEFAULT_BANK, "timid", 2)[0]))
        self.assertFalse(has_burst(build_pools(DEFAULT_BANK, "rage", 2)[1]))

    def test_burst_free_pool_matches_draw_pool(self):
        for tone in ("rage", "emotionless", "timid", "shaken", "panic"):
            for intensity in (0, 1, 2):
                pools, burst_free = build_pools(DEFAULT_BANK, tone, intensity)
                for role, tiers in burst_free.items():
                    for tier, pool in zip(tiers, pools[role]):
                        self.assertEqual(tier, tuple(e for e in pool if not is_burst(e.text)))

    def test_tier_of_only_burst_words_keeps_them(self):
        bank = flat_bank([E("おぇ…", "harsh")])
        pools, burst_free = build_pools(bank, "timid", 0)
        self.assertEqual(pools["cont"][0][0].text, "おぇ…")
        self.assertEqual(burst_free["cut"][0][0].text, "おぇ…")


class TestSampleFragment(unittest.TestCase):
    def test_fallback_when_filter_empties_pool(self):
        ctx = context(bank=flat_bank([E("うっ…", "soft")]))
        self.assertEqual(sample_fragment(ctx, "pre", prev_text="うっ…"), "うっ…")
        self.assertEqual(sample_fragment(ctx, "pre", prev_text="うっ…", strict=True), "うっ…")

    def test_never_repeats_previous_text(self):
        ctx = context(tone="rage", intensity=2)
        for prev in ("う゛…", "ぐっ…", "うぐ…", "ん…"):
            for _ in range(200):
                self.assertNotEqual(sample_fragment(ctx, "pre", prev_text=prev), prev)

    def test_strict_excludes_sound_key(self):
        ctx = context(tone="rage", intensity=1)
        for _ in range(300):
            self.assertNotEqual(sound_key(sample_fragment(ctx, "pre", prev_text="うぐ…", strict=True)), "うぐ")

    def test_every_positive_weight_entry_is_reachable(self):
        texts = ["ん…", "は…", "っ…", "く…", "ぐ…"]
        ctx = context(bank=flat_bank([E(t, "neutral") for t in texts]))
        seen = {sample_fragment(ctx, "pre") for _ in range(2000)}
        self.assertEqual(seen, set(texts))

    def test_seeded_sampling_is_reproducible(self):
        a = context(rng=make_generator(42))
        b = context(rng=make_generator(42))
        self.assertEqual(
            [sample_fragment(a, "cut") for _ in range(20)],
            [sample_fragment(b, "cut") for _ in range(20)],
        )

    def test_empty_role_gives_empty_fragment(self):
        empty = ((), (), ())
        bank = LexiconBank(pre=empty, cont=empty, cut=empty, after=empty)
        self.assertEqual(sample_fragment(context(bank=bank), "pre"), "")

    def test_empty_tier_uses_neighbour(self):
        tiers = ((), (E("ぐ…", "harsh"),), ())
        bank = LexiconBank(pre=tiers, cont=tiers, cut=tiers, after=tiers)
        for _ in range(50):
            self.assertEqual(sample_fragment(context(bank=bank, intensity=0), "pre"), "ぐ…")

    def test_no_burst_for_calm_tone(self):
        ctx = context(tone="timid", intensity=2)
        for _ in range(300):
            text = sample_fragment(ctx, "cont")
            self.assertFalse(any(m in text for m in BURST_MARKERS))


class TestStructureBias(unittest.TestCase):
    def test_reweight_renormalizes(self):
        out = reweight({"a": 50, "b": 50}, {"a": 1.3, "b": 0.7})
        self.assertAlmostEqual(sum(out.values()), 100.0)
        self.assertAlmostEqual(out["a"], 65.0)

    def test_zero_total_unchanged(self):
        self.assertEqual(reweight({"a": 0, "b": 0}, {"a": 2}), {"a": 0, "b": 0})

    def test_style_shifts_groups(self):
        base = structure_bias("emotionless", "none")
        restrained = structure_bias("emotionless", "restrained")
        self.assertAlmostEqual(sum(restrained.values()), 100.0)
        self.assertGreater(restrained["short"], base["short"])
        self.assertLess(restrained["long"], base["long"])


if __name__ == "__main__":
    unittest.main()
