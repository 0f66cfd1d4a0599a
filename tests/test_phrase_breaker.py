import unittest

from distress_lines import (
    BREAK_RULES,
    apply_break_rule,
    break_phrase,
    choose_break_rule,
    clean_phrase,
    make_break_example,
    split_phrase,
    unseeded_generator,
)

PHRASE = "もうやめてくれ"


def fixed(value):
    return lambda: value


class TestBreakExample(unittest.TestCase):
    def test_rules_at_mid_intensity(self):
        self.assertEqual(make_break_example(PHRASE, 1, "cut"), "もうやめ…")
        self.assertEqual(make_break_example(PHRASE, 1, "sokuon"), "もうやめっ…")
        self.assertEqual(make_break_example(PHRASE, 1, "choke"), "もうやめ…っ")
        self.assertEqual(make_break_example(PHRASE, 1, "repeat"), "もう…もうやめ…")
        self.assertEqual(make_break_example(PHRASE, 1, "split"), "もうやめ…めて…")

    def test_intensity_changes_remaining_length(self):
        self.assertEqual(make_break_example(PHRASE, 0, "cut"), "もうやめて…")
        self.assertEqual(make_break_example(PHRASE, 2, "cut"), "もう…")
        self.assertEqual(make_break_example(PHRASE, "weak", "cut"), "もうやめて…")

    def test_unknown_rule_splits(self):
        self.assertEqual(make_break_example(PHRASE, 1, "bogus"), "もうやめ…めて…")

    def test_strips_ascii_and_long_vowel(self):
        self.assertEqual(clean_phrase(" ありがとーabc123 "), "ありがと")
        self.assertEqual(make_break_example("ありがとーabc", 1, "split"), "あり…が…")

    def test_dash_for_nothing_to_break(self):
        self.assertEqual(make_break_example("", 1, "cut"), "-")
        self.assertEqual(make_break_example(None, 1, "cut"), "-")
        self.assertEqual(make_break_example("abc 123", 1, "cut"), "-")

    def test_matches_rule_application(self):
        head, tail = split_phrase(clean_phrase(PHRASE), 2)
        for rule in BREAK_RULES:
            self.assertEqual(make_break_example(PHRASE, 2, rule), apply_break_rule(rule, head, tail))


class TestChooseRule(unittest.TestCase):
    def test_single_enabled_rule(self):
        for v in (0.0, 0.5, 0.99):
            self.assertEqual(choose_break_rule(fixed(v), ["choke"]), "choke")

    def test_unknown_rules_fall_back_to_all(self):
        self.assertEqual(choose_break_rule(fixed(0.0), ["bogus"]), "cut")
        self.assertEqual(choose_break_rule(fixed(0.99), []), "split")

    def test_weights(self):
        weights = {"cut": 0, "sokuon": 0, "choke": 0, "repeat": 5, "split": 0}
        for v in (0.0, 0.5, 0.99):
            self.assertEqual(choose_break_rule(fixed(v), None, weights), "repeat")

    def test_unlisted_rule_gets_weight_one(self):
        for v in (0.0, 0.5, 0.99):
            self.assertEqual(choose_break_rule(fixed(v), ["cut", "split"], {"cut": 0}), "split")

    def test_zero_total_is_uniform(self):
        weights = {r: 0 for r in BREAK_RULES}
        self.assertEqual(choose_break_rule(fixed(0.0), None, weights), "cut")
        self.assertEqual(choose_break_rule(fixed(0.5), None, weights), "choke")


class TestBreakPhrase(unittest.TestCase):
    def test_uses_chosen_rule(self):
        self.assertEqual(break_phrase(PHRASE, 1, fixed(0.3), ["sokuon"]), "もうやめっ…")

    def test_empty_when_nothing_left(self):
        self.assertEqual(break_phrase("hello", 1, fixed(0.3)), "")
        self.assertEqual(break_phrase("", 1, fixed(0.3)), "")

    def test_lossy_but_bounded(self):
        rng = unseeded_generator()
        for phrase in ("あ", "たすけて", PHRASE, "いやだいやだいやだいやだいやだ", "x痛いy"):
            cleaned = clean_phrase(phrase)
            for intensity in (0, 1, 2):
                for rule in BREAK_RULES:
                    out = break_phrase(phrase, intensity, rng, [rule])
                    self.assertTrue(out)
                    self.assertLessEqual(len(out), 2 * len(cleaned) + 2)


if __name__ == "__main__":
    unittest.main()
